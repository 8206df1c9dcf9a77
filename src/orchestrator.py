"""
Session Orchestrator for the Finance Ledger

Ties the user directory, the account store and the Ledger together behind
the operations an interactive front end calls:

    register / login / logout / delete_account / exit
    add_income / add_expense / remove_entry / change_password
    balance / list_entries / summary_report / category_report
    export_summary_report / export_category_report

Session states:

    ANONYMOUS --(register | login)--> ACTIVE --(logout | delete_account)--> ANONYMOUS
    ANONYMOUS | ACTIVE --(exit)--> TERMINATED

Every operation returns an OperationResult. Storage and ledger exceptions
are converted to an ErrorKind here and never escape to the caller. Each
outcome is written to the audit log.
"""

from decimal import Decimal
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from pydantic import ValidationError

from src.audit import AuditLogger, configure_logging, create_correlation_id
from src.config import Settings, get_settings
from src.ledger.account import EntryIndexError, Ledger
from src.models.account import ErrorKind, OperationResult
from src.models.audit import AuditEvent, AuditEventBuilder
from src.models.entry import DateValue, LedgerEntry
from src.reports import ReportWriter
from src.services.storage import (
    AccountKeyCipher,
    AccountStoreInterface,
    AuthError,
    AuthFailure,
    DuplicateError,
    FlatFileAccountStore,
    FlatFileUserDirectory,
    InvalidUsernameError,
    JsonLinesAuditStorage,
    NotFoundError,
    RecordFormatError,
    RecordIOError,
    UserDirectoryInterface,
)


UNSAVED_WARNING = "The change is applied in memory but was not saved to disk"

_AUTH_ERROR_KINDS = {
    AuthFailure.USERNAME_MISMATCH: ErrorKind.USERNAME_MISMATCH,
    AuthFailure.WRONG_PASSWORD: ErrorKind.WRONG_PASSWORD,
}


class SessionState(str, Enum):
    """Lifecycle of a ledger session."""
    ANONYMOUS = "anonymous"
    ACTIVE = "active"
    TERMINATED = "terminated"


class LedgerSession:
    """
    One interactive session: at most one account is open at a time.

    The directory and store are injected; the session owns neither their
    lifecycle nor their files.
    """

    def __init__(
        self,
        directory: UserDirectoryInterface,
        store: AccountStoreInterface,
        cipher: Optional[AccountKeyCipher] = None,
        audit_logger: Optional[AuditLogger] = None,
        report_writer: Optional[ReportWriter] = None,
        correlation_id: Optional[UUID] = None,
    ):
        self._directory = directory
        self._store = store
        self._cipher = cipher or AccountKeyCipher()
        self._audit_logger = audit_logger
        self._report_writer = report_writer
        self._correlation_id = correlation_id or create_correlation_id()
        self._state = SessionState.ANONYMOUS
        self._active: Optional[Ledger] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active(self) -> Optional[Ledger]:
        return self._active

    @property
    def correlation_id(self) -> UUID:
        return self._correlation_id

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger is not None:
            self._audit_logger.log(event)

    def _reject(
        self,
        operation: str,
        kind: ErrorKind,
        message: str,
        username: Optional[str] = None,
        warnings: Optional[list[str]] = None,
    ) -> OperationResult:
        self._audit(AuditEventBuilder.operation_rejected(
            operation=operation,
            error_code=kind.value,
            error_message=message,
            username=username,
            correlation_id=self._correlation_id,
        ))
        return OperationResult.fail(kind, message, warnings)

    def _require_anonymous(self, operation: str) -> Optional[OperationResult]:
        if self._state is SessionState.ACTIVE:
            return self._reject(
                operation,
                ErrorKind.SESSION_ACTIVE,
                f"Log out of {self._active.username} first",
                username=self._active.username,
            )
        if self._state is SessionState.TERMINATED:
            return self._reject(operation, ErrorKind.NO_ACTIVE_SESSION, "Session has ended")
        return None

    def _require_active(self, operation: str) -> Optional[OperationResult]:
        if self._state is not SessionState.ACTIVE or self._active is None:
            return self._reject(operation, ErrorKind.NO_ACTIVE_SESSION, "No account is logged in")
        return None

    def _activate(self, ledger: Ledger) -> None:
        self._active = ledger
        self._state = SessionState.ACTIVE

    def _deactivate(self, state: SessionState = SessionState.ANONYMOUS) -> None:
        self._active = None
        self._state = state

    def _save_failed(self, operation: str, ledger: Ledger, error: RecordIOError) -> OperationResult:
        self._audit(AuditEventBuilder.save_failed(
            username=ledger.username,
            error_message=str(error),
            correlation_id=self._correlation_id,
        ))
        return OperationResult.fail(
            ErrorKind.IO_ERROR,
            f"{operation}: {error}",
            warnings=[UNSAVED_WARNING],
        )

    def _mutate(
        self,
        operation: str,
        action: Callable[[Ledger], object],
    ) -> tuple[Optional[object], Optional[OperationResult]]:
        """Run a ledger mutation, converting a save failure into a result."""
        ledger = self._active
        try:
            return action(ledger), None
        except RecordIOError as e:
            return None, self._save_failed(operation, ledger, e)

    # -------------------------------------------------------------------------
    # Account lifecycle
    # -------------------------------------------------------------------------

    def register(self, username: str, password: str) -> OperationResult:
        """Create an account and open it."""
        blocked = self._require_anonymous("register")
        if blocked:
            return blocked

        try:
            self._directory.register(username)
        except InvalidUsernameError as e:
            return self._reject("register", ErrorKind.INVALID_USERNAME, str(e), username)
        except DuplicateError as e:
            return self._reject("register", ErrorKind.DUPLICATE, str(e), username)
        except RecordIOError as e:
            return self._reject("register", ErrorKind.IO_ERROR, str(e), username)

        ledger = Ledger(
            username,
            password,
            self._cipher.generate_key(len(username)),
            store=self._store,
        )
        try:
            self._store.save(ledger)
        except RecordIOError as e:
            return self._reject(
                "register",
                ErrorKind.IO_ERROR,
                str(e),
                username,
                warnings=[f"{username} is registered but has no account record"],
            )

        self._activate(ledger)
        self._audit(AuditEventBuilder.account_registered(username, self._correlation_id))
        return OperationResult.ok(ledger, f"User {username} registered successfully.")

    def login(self, username: str, password: str) -> OperationResult:
        """Verify credentials, rebuild the ledger and open it."""
        blocked = self._require_anonymous("login")
        if blocked:
            return blocked

        if not self._directory.contains(username):
            return self._login_failed(username, ErrorKind.NOT_FOUND, f"User does not exist: {username}")

        try:
            record = self._store.read_record(username)
            ledger = self._store.unlock(record, username, password)
        except NotFoundError as e:
            return self._login_failed(username, ErrorKind.NOT_FOUND, str(e))
        except AuthError as e:
            return self._login_failed(username, _AUTH_ERROR_KINDS[e.kind], str(e))
        except RecordFormatError as e:
            return self._login_failed(username, ErrorKind.MALFORMED_RECORD, str(e))
        except RecordIOError as e:
            return self._login_failed(username, ErrorKind.IO_ERROR, str(e))

        warnings = []
        if record.stored_balance is not None and record.stored_balance != ledger.balance:
            warnings.append(
                f"Stored balance {record.stored_balance} differs from the entries "
                f"({ledger.balance}); using the entries"
            )
            self._audit(AuditEventBuilder.balance_mismatch(
                username,
                str(record.stored_balance),
                str(ledger.balance),
                self._correlation_id,
            ))

        self._activate(ledger)
        self._audit(AuditEventBuilder.login_succeeded(username, len(ledger), self._correlation_id))
        return OperationResult.ok(ledger, f"User {username} logged in successfully.", warnings)

    def _login_failed(self, username: str, kind: ErrorKind, message: str) -> OperationResult:
        self._audit(AuditEventBuilder.login_failed(username, kind.value, self._correlation_id))
        return OperationResult.fail(kind, message)

    def logout(self) -> OperationResult:
        """Persist the open ledger and close it."""
        blocked = self._require_active("logout")
        if blocked:
            return blocked

        ledger = self._active
        try:
            self._store.save(ledger)
        except RecordIOError as e:
            return self._save_failed("logout", ledger, e)

        self._deactivate()
        self._audit(AuditEventBuilder.logout(ledger.username, self._correlation_id))
        return OperationResult.ok(message=f"User {ledger.username} logged out.")

    def delete_account(self, username: str, password: str) -> OperationResult:
        """
        Remove an account from the directory and delete its record.

        The password is checked against the record first. If the record is
        already gone, the directory entry is still removed.
        """
        if self._state is SessionState.TERMINATED:
            return self._reject("delete_account", ErrorKind.NO_ACTIVE_SESSION, "Session has ended")
        if self._active is not None and self._active.username != username:
            return self._reject(
                "delete_account",
                ErrorKind.SESSION_ACTIVE,
                f"Log out of {self._active.username} first",
                username=username,
            )
        if not self._directory.contains(username):
            return self._reject(
                "delete_account", ErrorKind.NOT_FOUND, f"User does not exist: {username}", username
            )

        warnings = []
        try:
            self._store.load(username, password)
        except NotFoundError:
            warnings.append(f"No account record existed for {username}")
        except AuthError as e:
            return self._reject("delete_account", _AUTH_ERROR_KINDS[e.kind], str(e), username)
        except RecordFormatError as e:
            return self._reject("delete_account", ErrorKind.MALFORMED_RECORD, str(e), username)
        except RecordIOError as e:
            return self._reject("delete_account", ErrorKind.IO_ERROR, str(e), username)

        try:
            self._directory.remove(username)
        except (NotFoundError, RecordIOError) as e:
            kind = ErrorKind.NOT_FOUND if isinstance(e, NotFoundError) else ErrorKind.IO_ERROR
            return self._reject("delete_account", kind, str(e), username)

        if self._active is not None:
            self._deactivate()

        try:
            self._store.delete(username)
        except RecordIOError as e:
            return self._reject(
                "delete_account",
                ErrorKind.IO_ERROR,
                str(e),
                username,
                warnings=warnings + [f"{username} was removed from the directory but its record remains"],
            )

        self._audit(AuditEventBuilder.account_deleted(username, self._correlation_id))
        return OperationResult.ok(message="Account deleted successfully.", warnings=warnings)

    def exit(self) -> OperationResult:
        """Persist any open ledger and end the session for good."""
        if self._state is SessionState.TERMINATED:
            return OperationResult.ok(message="Session already ended.")

        ledger = self._active
        username = ledger.username if ledger else None
        result = OperationResult.ok(message="Goodbye.")
        if ledger is not None:
            try:
                self._store.save(ledger)
            except RecordIOError as e:
                result = self._save_failed("exit", ledger, e)
            else:
                self._audit(AuditEventBuilder.record_saved(username, len(ledger), self._correlation_id))

        self._deactivate(SessionState.TERMINATED)
        self._audit(AuditEventBuilder.session_exited(username, self._correlation_id))
        return result

    def change_password(self, new_password: str) -> OperationResult:
        blocked = self._require_active("change_password")
        if blocked:
            return blocked

        _, failed = self._mutate(
            "change_password", lambda ledger: ledger.change_password(new_password)
        )
        if failed:
            return failed
        self._audit(AuditEventBuilder.password_changed(self._active.username, self._correlation_id))
        return OperationResult.ok(message="Password changed successfully.")

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def _add(self, operation: str, build: Callable[[], LedgerEntry], date: DateValue) -> OperationResult:
        blocked = self._require_active(operation)
        if blocked:
            return blocked
        username = self._active.username

        if not date.is_valid():
            return self._reject(operation, ErrorKind.INVALID_DATE, f"Invalid date: {date}", username)
        try:
            entry = build()
        except ValidationError as e:
            return self._reject(operation, ErrorKind.INVALID_ENTRY, str(e), username)

        _, failed = self._mutate(operation, lambda ledger: ledger.add_entry(entry))
        if failed:
            return failed

        self._audit(AuditEventBuilder.entry_added(
            username,
            entry.kind.value,
            str(entry.amount),
            len(self._active) - 1,
            self._correlation_id,
        ))
        return OperationResult.ok(entry, f"{entry.kind.value} added.")

    def add_income(self, amount: Decimal, description: str, date: DateValue) -> OperationResult:
        return self._add(
            "add_income",
            lambda: LedgerEntry.income(amount, description, date),
            date,
        )

    def add_expense(
        self,
        amount: Decimal,
        description: str,
        date: DateValue,
        category: str,
    ) -> OperationResult:
        return self._add(
            "add_expense",
            lambda: LedgerEntry.expense(amount, description, date, category),
            date,
        )

    def remove_entry(self, index: int) -> OperationResult:
        blocked = self._require_active("remove_entry")
        if blocked:
            return blocked
        username = self._active.username

        try:
            entry, failed = self._mutate("remove_entry", lambda ledger: ledger.remove_entry(index))
        except EntryIndexError as e:
            return self._reject("remove_entry", ErrorKind.INDEX_OUT_OF_RANGE, str(e), username)
        if failed:
            return failed

        self._audit(AuditEventBuilder.entry_removed(
            username,
            entry.kind.value,
            str(entry.amount),
            index,
            self._correlation_id,
        ))
        return OperationResult.ok(entry, f"{entry.kind.value} removed.")

    def list_entries(self) -> OperationResult:
        blocked = self._require_active("list_entries")
        if blocked:
            return blocked
        return OperationResult.ok(self._active.entries)

    def balance(self) -> OperationResult:
        blocked = self._require_active("balance")
        if blocked:
            return blocked
        return OperationResult.ok(self._active.overall_balance())

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def _check_period(self, operation: str, lo: DateValue, hi: DateValue) -> Optional[OperationResult]:
        for value in (lo, hi):
            if not value.is_valid():
                return self._reject(
                    operation,
                    ErrorKind.INVALID_DATE,
                    f"Invalid date: {value}",
                    self._active.username,
                )
        return None

    def summary_report(self, lo: DateValue, hi: DateValue) -> OperationResult:
        blocked = self._require_active("summary_report") or self._check_period("summary_report", lo, hi)
        if blocked:
            return blocked
        report = self._active.summary_report(lo, hi)
        self._audit(AuditEventBuilder.report_generated(report.username, "summary", self._correlation_id))
        return OperationResult.ok(report)

    def category_report(self, category: str) -> OperationResult:
        blocked = self._require_active("category_report")
        if blocked:
            return blocked
        report = self._active.category_report(category)
        self._audit(AuditEventBuilder.report_generated(report.username, "category", self._correlation_id))
        return OperationResult.ok(report)

    def _writer(self) -> ReportWriter:
        if self._report_writer is None:
            self._report_writer = ReportWriter()
        return self._report_writer

    def export_summary_report(self, lo: DateValue, hi: DateValue) -> OperationResult:
        result = self.summary_report(lo, hi)
        if not result.success:
            return result
        try:
            path = self._writer().write_summary(result.value)
        except RecordIOError as e:
            return self._reject("export_summary_report", ErrorKind.IO_ERROR, str(e), self._active.username)
        self._audit(AuditEventBuilder.report_exported(
            self._active.username, "summary", str(path), self._correlation_id
        ))
        return OperationResult.ok(path, "Summary report file created successfully.")

    def export_category_report(self, category: str) -> OperationResult:
        result = self.category_report(category)
        if not result.success:
            return result
        try:
            path = self._writer().write_category(result.value)
        except RecordIOError as e:
            return self._reject("export_category_report", ErrorKind.IO_ERROR, str(e), self._active.username)
        self._audit(AuditEventBuilder.report_exported(
            self._active.username, "category", str(path), self._correlation_id
        ))
        return OperationResult.ok(path, "Category report file created successfully.")


def create_session(settings: Optional[Settings] = None) -> LedgerSession:
    """
    Factory function wiring a session from configuration.

    Loads the user directory up front and attaches a JSON-lines audit log
    when one is configured.
    """
    settings = settings or get_settings()
    storage_settings = settings.storage
    audit_settings = settings.audit

    configure_logging(audit_settings.log_level)

    cipher = AccountKeyCipher(settings.cipher)
    store = FlatFileAccountStore(storage_settings, cipher)
    directory = FlatFileUserDirectory(storage_settings)
    directory.load_all()

    audit_storage = None
    if audit_settings.log_file is not None:
        audit_storage = JsonLinesAuditStorage(audit_settings.log_file)
    audit_logger = AuditLogger(audit_storage, enabled=audit_settings.enabled)

    return LedgerSession(
        directory=directory,
        store=store,
        cipher=cipher,
        audit_logger=audit_logger,
        report_writer=ReportWriter(storage_settings),
    )
