"""
Flat-File Storage Implementation

One plain-text record per account plus a line-per-username index.

Record layout (every line newline-terminated):

    <account key, raw bytes>
    <obfuscated password, raw bytes>
    <username>
    <balance>
    then per entry:
        Income | Expense
        <amount>
        <description>
        <day>/<month>/<year>
        <category>          (Expense only)

Records are written and read in binary mode because the first two lines
are raw bytes. Every save rewrites the whole file; a crash mid-write
leaves a truncated record.

The index is rewritten through a temporary file and a single os.replace,
so an interrupted removal leaves either the old or the new index.
"""

import json
import os
import re
import tempfile
from collections import deque
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from src.config import StorageSettings, get_settings
from src.ledger.account import Ledger
from src.models.account import AccountRecord
from src.models.audit import AuditEvent
from src.models.entry import DateValue, EntryKind, LedgerEntry
from src.services.storage.cipher import RECORD_TERMINATOR, AccountKeyCipher
from src.services.storage.interface import (
    AccountStoreInterface,
    AuditStorageInterface,
    AuthError,
    AuthFailure,
    DuplicateError,
    InvalidUsernameError,
    NotFoundError,
    RecordFormatError,
    RecordIOError,
    UserDirectoryInterface,
)


NEWLINE = b"\n"

# Lines that follow the type tag of each entry kind
ENTRY_FIELD_COUNT = {
    EntryKind.INCOME: 3,   # amount, description, date
    EntryKind.EXPENSE: 4,  # amount, description, date, category
}

# Key draws allowed before a password is declared unstorable
MAX_KEY_ROTATIONS = 256

# Leading number of a line; trailing text is ignored
_NUMBER_PATTERN = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def format_decimal(value: Decimal) -> str:
    """Plain decimal text, never exponent notation."""
    return format(value, "f")


def read_decimal(text: str) -> Optional[Decimal]:
    """
    Read the number a line starts with.

    ``"12.5"`` and ``"12abc"`` both give a value; a line with no leading
    digits, or one that overflows to a non-finite value, gives None.
    """
    match = _NUMBER_PATTERN.match(text)
    if match is None:
        return None
    try:
        value = Decimal(match.group(1))
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _text(line: bytes) -> str:
    return line.decode("utf-8", errors="surrogateescape")


def _ensure_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RecordIOError(f"Cannot create directory {path}: {e}") from e


class FlatFileAccountStore(AccountStoreInterface):
    """
    Account records as ``<data_dir>/<username><record_suffix>``.
    """

    def __init__(
        self,
        settings: Optional[StorageSettings] = None,
        cipher: Optional[AccountKeyCipher] = None,
    ):
        self._settings = settings or get_settings().storage
        self._cipher = cipher or AccountKeyCipher()
        if self._settings.create_dirs:
            _ensure_dir(self._settings.data_dir)

    @property
    def cipher(self) -> AccountKeyCipher:
        return self._cipher

    def record_path(self, username: str) -> Path:
        return self._settings.record_path(username)

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def _entry_lines(self, entry: LedgerEntry) -> list[bytes]:
        lines = [
            entry.kind.value.encode("utf-8"),
            format_decimal(entry.amount).encode("utf-8"),
            entry.description.encode("utf-8", errors="surrogateescape"),
            str(entry.date).encode("utf-8"),
        ]
        if entry.kind is EntryKind.EXPENSE:
            lines.append((entry.category or "").encode("utf-8", errors="surrogateescape"))
        return lines

    def _masked_password(self, ledger: Ledger) -> bytes:
        # A masked byte equal to the line terminator would split the record,
        # so draw a new key until the masked password fits on one line.
        masked = self._cipher.obfuscate(ledger.password, ledger.account_key)
        attempts = 0
        while RECORD_TERMINATOR in masked:
            if attempts == MAX_KEY_ROTATIONS:
                raise RecordIOError(
                    f"Error saving user data: no account key keeps the password of "
                    f"{ledger.username} on one line after {MAX_KEY_ROTATIONS} attempts"
                )
            ledger.rotate_key(self._cipher.generate_key(len(ledger.username)))
            masked = self._cipher.obfuscate(ledger.password, ledger.account_key)
            attempts += 1
        return masked

    def serialize(self, ledger: Ledger) -> bytes:
        """Render the full record for a ledger."""
        masked = self._masked_password(ledger)
        lines = [
            ledger.account_key,
            masked,
            ledger.username.encode("utf-8"),
            format_decimal(ledger.balance).encode("utf-8"),
        ]
        for entry in ledger.entries:
            lines.extend(self._entry_lines(entry))
        return b"".join(line + NEWLINE for line in lines)

    def save(self, ledger: Ledger) -> None:
        path = self.record_path(ledger.username)
        if path == self._settings.users_path:
            raise RecordIOError(
                f"Error saving user data: the record for {ledger.username} would replace the user index"
            )
        payload = self.serialize(ledger)
        try:
            with open(path, "wb") as fh:
                fh.write(payload)
        except OSError as e:
            raise RecordIOError(f"Error saving user data: cannot write {path}: {e}") from e

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def _parse_entry(
        self,
        kind: EntryKind,
        fields: list[bytes],
        line_number: int,
    ) -> LedgerEntry:
        amount_text = _text(fields[0]).strip()
        amount = read_decimal(amount_text)
        if amount is None:
            raise RecordFormatError(
                f"Unreadable amount {amount_text!r} at line {line_number + 1}"
            )

        description = _text(fields[1])
        date = DateValue.parse(_text(fields[2]))
        try:
            if kind is EntryKind.INCOME:
                return LedgerEntry.income(amount, description, date)
            return LedgerEntry.expense(amount, description, date, _text(fields[3]))
        except ValidationError as e:
            raise RecordFormatError(
                f"Invalid {kind.value} entry at line {line_number + 1}: {e}"
            ) from e

    def parse(self, data: bytes) -> AccountRecord:
        """Parse record bytes. Unknown tag lines are skipped."""
        lines = data.split(NEWLINE)
        if lines and lines[-1] == b"":
            lines.pop()
        # A short header reads as empty lines
        header = lines[:4] + [b""] * (4 - len(lines[:4]))
        key, masked, username_line, balance_line = header

        if not key:
            raise RecordFormatError("Record has no account key")

        stored_balance = read_decimal(_text(balance_line))

        entries: list[LedgerEntry] = []
        cursor = 4
        while cursor < len(lines):
            tag = _text(lines[cursor])
            cursor += 1
            try:
                kind = EntryKind(tag)
            except ValueError:
                continue
            count = ENTRY_FIELD_COUNT[kind]
            fields = lines[cursor:cursor + count]
            if len(fields) < count:
                raise RecordFormatError(
                    f"Truncated {kind.value} entry at line {cursor}"
                )
            entries.append(self._parse_entry(kind, fields, cursor))
            cursor += count

        return AccountRecord(
            account_key=key,
            obfuscated_password=masked,
            username=_text(username_line),
            stored_balance=stored_balance,
            entries=tuple(entries),
        )

    def read_record(self, username: str) -> AccountRecord:
        path = self.record_path(username)
        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"User data not found: {username}") from e
        except OSError as e:
            raise RecordIOError(f"Cannot read {path}: {e}") from e
        return self.parse(data)

    def unlock(
        self,
        record: AccountRecord,
        username: str,
        password: str,
    ) -> Ledger:
        if record.username != username:
            raise AuthError(AuthFailure.USERNAME_MISMATCH, username)
        revealed = self._cipher.reveal(record.obfuscated_password, record.account_key)
        if revealed != password:
            raise AuthError(AuthFailure.WRONG_PASSWORD, username)

        # Rebuild the balance from the entry log, not from stored_balance
        ledger = Ledger(username, password, record.account_key)
        for entry in record.entries:
            ledger.add_entry(entry)
        ledger.attach_store(self)
        return ledger

    def delete(self, username: str) -> None:
        path = self.record_path(username)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise RecordIOError(f"Cannot delete {path}: {e}") from e

    def exists(self, username: str) -> bool:
        return self.record_path(username).is_file()


class FlatFileUserDirectory(UserDirectoryInterface):
    """
    Registered usernames, one per line in ``<data_dir>/<users_file>``.

    The index is read on first use (or explicitly via load_all) and kept
    in memory; every mutation is written through to the file.
    """

    def __init__(self, settings: Optional[StorageSettings] = None):
        self._settings = settings or get_settings().storage
        self._path = self._settings.users_path
        # dict keys keep registration order
        self._names: Optional[dict[str, None]] = None
        if self._settings.create_dirs:
            _ensure_dir(self._path.parent)

    @property
    def path(self) -> Path:
        return self._path

    def _read_lines(self) -> list[str]:
        try:
            with open(self._path, "r", encoding="utf-8", newline="") as fh:
                return [line.rstrip("\r\n") for line in fh]
        except FileNotFoundError:
            return []
        except OSError as e:
            raise RecordIOError(f"Cannot read user index {self._path}: {e}") from e

    def _loaded(self) -> dict[str, None]:
        if self._names is None:
            self.load_all()
        return self._names

    def load_all(self) -> set[str]:
        self._names = {}
        for line in self._read_lines():
            if line:
                self._names[line] = None
        return set(self._names)

    def names(self) -> list[str]:
        return list(self._loaded())

    def contains(self, username: str) -> bool:
        return username in self._loaded()

    def _check_username(self, username: str) -> None:
        if not username or "\n" in username or "\r" in username:
            raise InvalidUsernameError(username, "must be a non-empty single line")
        if "/" in username or "\\" in username or username in (".", ".."):
            raise InvalidUsernameError(username, "must not contain a path")
        # Compared case-insensitively for case-folding filesystems
        record_name = self._settings.record_path(username).name
        if record_name.casefold() == self._path.name.casefold():
            raise InvalidUsernameError(username, "is reserved for the user index")

    def register(self, username: str) -> None:
        self._check_username(username)
        names = self._loaded()
        if username in names:
            raise DuplicateError(f"User already exists: {username}")
        try:
            with open(self._path, "a", encoding="utf-8", newline="") as fh:
                fh.write(username + "\n")
        except OSError as e:
            raise RecordIOError(f"Cannot write user index {self._path}: {e}") from e
        names[username] = None

    def remove(self, username: str) -> None:
        names = self._loaded()
        if username not in names:
            raise NotFoundError(f"User does not exist: {username}")
        remaining = [line for line in self._read_lines() if line and line != username]
        self._replace(remaining)
        del names[username]

    def _replace(self, lines: list[str]) -> None:
        directory = self._path.parent
        fd, tmp_name = tempfile.mkstemp(
            dir=directory,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.writelines(line + "\n" for line in lines)
            os.replace(tmp_name, self._path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise RecordIOError(f"Cannot rewrite user index {self._path}: {e}") from e


class JsonLinesAuditStorage(AuditStorageInterface):
    """Audit events appended as JSON lines to a single file."""

    def __init__(self, path: Path):
        self._path = Path(path)
        _ensure_dir(self._path.parent)

    @property
    def path(self) -> Path:
        return self._path

    def append_event(self, event: AuditEvent) -> bool:
        try:
            with open(self._path, "a", encoding="utf-8") as fh:
                fh.write(event.to_json_line() + "\n")
        except OSError as e:
            raise RecordIOError(f"Cannot append to audit log {self._path}: {e}") from e
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            with open(self._path, "r", encoding="utf-8") as fh:
                tail = deque((line for line in fh if line.strip()), maxlen=limit)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise RecordIOError(f"Cannot read audit log {self._path}: {e}") from e
        return [AuditEvent.model_validate(json.loads(line)) for line in reversed(tail)]
