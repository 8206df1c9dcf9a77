"""
Tests for the session orchestrator: state machine, error kinds, auditing.
"""

from decimal import Decimal

import pytest

from src.ledger import Ledger
from src.models.account import ErrorKind, SummaryReport
from src.models.audit import AuditEventType
from src.orchestrator import SessionState, create_session
from src.services.storage import RecordIOError

from conftest import d


def recorded_types(audit_storage):
    return [e.event_type for e in reversed(audit_storage.get_recent_events(limit=1000))]


@pytest.fixture
def logged_in(session):
    result = session.register("alice", "pw")
    assert result.success
    return session


def fail_saves(monkeypatch, store):
    def fail(_ledger):
        raise RecordIOError("disk full")

    monkeypatch.setattr(store, "save", fail)


class TestRegister:
    """Tests for registration."""

    def test_register_opens_session(self, session, directory, store):
        result = session.register("alice", "pw")

        assert result.success
        assert isinstance(result.value, Ledger)
        assert session.state is SessionState.ACTIVE
        assert session.active.username == "alice"
        assert directory.names() == ["alice"]
        assert store.exists("alice")

    def test_account_key_matches_username_length(self, logged_in):
        assert len(logged_in.active.account_key) == len("alice")

    def test_duplicate_registration(self, session):
        session.register("alice", "pw")
        session.logout()
        result = session.register("alice", "other")

        assert not result.success
        assert result.error_kind is ErrorKind.DUPLICATE
        assert session.state is SessionState.ANONYMOUS

    def test_register_while_active(self, logged_in):
        result = logged_in.register("bob", "pw")
        assert result.error_kind is ErrorKind.SESSION_ACTIVE
        assert logged_in.active.username == "alice"

    @pytest.mark.parametrize("name", ["", "a\nb", "../bob"])
    def test_unusable_username_is_reported(self, session, directory, name):
        result = session.register(name, "pw")

        assert result.error_kind is ErrorKind.INVALID_USERNAME
        assert session.state is SessionState.ANONYMOUS
        assert directory.names() == []

    def test_index_name_cannot_be_registered(self, session, directory):
        session.register("alice", "pw")
        session.logout()

        result = session.register("users", "pw")
        assert result.error_kind is ErrorKind.INVALID_USERNAME
        assert directory.load_all() == {"alice"}
        assert directory.path.read_text(encoding="utf-8") == "alice\n"
        assert session.login("alice", "pw").success

    def test_register_save_failure(self, session, store, monkeypatch):
        fail_saves(monkeypatch, store)
        result = session.register("alice", "pw")
        assert result.error_kind is ErrorKind.IO_ERROR
        assert result.has_warnings
        assert session.state is SessionState.ANONYMOUS


class TestLogin:
    """Tests for login and logout."""

    def test_login_after_logout(self, logged_in):
        logged_in.add_income(Decimal("1000"), "salary", d(1, 1, 2024))
        assert logged_in.logout().success
        assert logged_in.state is SessionState.ANONYMOUS

        result = logged_in.login("alice", "pw")
        assert result.success
        assert result.value.balance == Decimal("1000")
        assert logged_in.state is SessionState.ACTIVE

    def test_unknown_user(self, session):
        result = session.login("ghost", "pw")
        assert result.error_kind is ErrorKind.NOT_FOUND

    def test_registered_user_without_record(self, session, directory):
        directory.register("orphan")
        result = session.login("orphan", "pw")
        assert result.error_kind is ErrorKind.NOT_FOUND

    def test_wrong_password(self, logged_in):
        logged_in.logout()
        result = logged_in.login("alice", "nope")
        assert result.error_kind is ErrorKind.WRONG_PASSWORD
        assert logged_in.state is SessionState.ANONYMOUS

    def test_username_mismatch(self, session, store, directory):
        session.register("bob", "pw")
        session.logout()
        directory.register("alice")
        store.record_path("bob").rename(store.record_path("alice"))

        result = session.login("alice", "pw")
        assert result.error_kind is ErrorKind.USERNAME_MISMATCH

    def test_malformed_record(self, logged_in, store):
        logged_in.logout()
        with open(store.record_path("alice"), "ab") as fh:
            fh.write(b"Income\nlots\nx\n1/1/2024\n")
        result = logged_in.login("alice", "pw")
        assert result.error_kind is ErrorKind.MALFORMED_RECORD

    def test_login_while_active(self, logged_in):
        assert logged_in.login("alice", "pw").error_kind is ErrorKind.SESSION_ACTIVE

    def test_logout_without_session(self, session):
        assert session.logout().error_kind is ErrorKind.NO_ACTIVE_SESSION

    def test_balance_mismatch_warning(self, logged_in, store, audit_storage):
        logged_in.add_income(Decimal("10"), "tip", d(1, 1, 2024))
        logged_in.logout()
        lines = store.record_path("alice").read_bytes().split(b"\n")
        lines[3] = b"5000"
        store.record_path("alice").write_bytes(b"\n".join(lines))

        result = logged_in.login("alice", "pw")
        assert result.success
        assert result.value.balance == Decimal("10")
        assert result.has_warnings
        assert AuditEventType.BALANCE_MISMATCH in recorded_types(audit_storage)


class TestEntries:
    """Tests for adding and removing entries through the session."""

    def test_example_flow(self, logged_in):
        assert logged_in.add_income(Decimal("1000"), "salary", d(1, 1, 2024)).success
        assert logged_in.add_expense(Decimal("200"), "food", d(15, 1, 2024), "Food").success

        assert logged_in.balance().value == Decimal("800")
        report = logged_in.summary_report(d(1, 1, 2024), d(31, 1, 2024)).value
        assert isinstance(report, SummaryReport)
        assert report.income_total == Decimal("1000")
        assert logged_in.category_report("Food").value.category_total == Decimal("200")

    def test_invalid_date_rejected(self, logged_in):
        result = logged_in.add_income(Decimal("5"), "x", d(30, 2, 2024))
        assert result.error_kind is ErrorKind.INVALID_DATE
        assert logged_in.balance().value == Decimal(0)
        assert logged_in.list_entries().value == ()

    def test_invalid_entry_rejected(self, logged_in):
        result = logged_in.add_expense(Decimal("-5"), "x", d(1, 1, 2024), "Food")
        assert result.error_kind is ErrorKind.INVALID_ENTRY
        assert len(logged_in.active) == 0

    def test_remove_entry(self, logged_in):
        logged_in.add_income(Decimal("1000"), "salary", d(1, 1, 2024))
        logged_in.add_expense(Decimal("200"), "food", d(15, 1, 2024), "Food")
        result = logged_in.remove_entry(0)

        assert result.success
        assert result.value.description == "salary"
        assert logged_in.balance().value == Decimal("-200")

    def test_remove_out_of_range(self, logged_in):
        logged_in.add_income(Decimal("1000"), "salary", d(1, 1, 2024))
        result = logged_in.remove_entry(3)
        assert result.error_kind is ErrorKind.INDEX_OUT_OF_RANGE
        assert logged_in.balance().value == Decimal("1000")

    def test_save_failure_is_reported_not_rolled_back(self, logged_in, store, monkeypatch):
        fail_saves(monkeypatch, store)
        result = logged_in.add_income(Decimal("50"), "gift", d(1, 1, 2024))

        assert result.error_kind is ErrorKind.IO_ERROR
        assert result.has_warnings
        assert logged_in.balance().value == Decimal("50")

    def test_entries_require_session(self, session):
        result = session.add_income(Decimal("1"), "x", d(1, 1, 2024))
        assert result.error_kind is ErrorKind.NO_ACTIVE_SESSION

    def test_changes_are_persisted(self, logged_in, store):
        logged_in.add_expense(Decimal("20"), "bus", d(2, 2, 2024), "Travel")
        reloaded = store.load("alice", "pw")
        assert reloaded.balance == Decimal("-20")


class TestReports:
    """Tests for report generation and export."""

    def test_summary_rejects_invalid_period(self, logged_in):
        result = logged_in.summary_report(d(1, 1, 2024), d(32, 1, 2024))
        assert result.error_kind is ErrorKind.INVALID_DATE

    def test_export_summary(self, logged_in, storage_settings):
        logged_in.add_income(Decimal("1000"), "salary", d(1, 1, 2024))
        result = logged_in.export_summary_report(d(1, 1, 2024), d(31, 1, 2024))

        assert result.success
        assert result.value.parent == storage_settings.reports_dir
        assert "Total Income: 1000 BDT" in result.value.read_text(encoding="utf-8")

    def test_export_category(self, logged_in):
        logged_in.add_expense(Decimal("200"), "food", d(15, 1, 2024), "Food")
        result = logged_in.export_category_report("Food")
        assert result.value.name == "alice_Food_report.txt"

    def test_reports_require_session(self, session):
        assert session.category_report("Food").error_kind is ErrorKind.NO_ACTIVE_SESSION
        assert session.summary_report(d(1, 1, 2024), d(2, 1, 2024)).error_kind is ErrorKind.NO_ACTIVE_SESSION


class TestPasswordAndDeletion:
    """Tests for password change and account deletion."""

    def test_change_password(self, logged_in):
        logged_in.add_income(Decimal("7"), "x", d(1, 1, 2024))
        assert logged_in.change_password("new").success
        logged_in.logout()

        assert logged_in.login("alice", "pw").error_kind is ErrorKind.WRONG_PASSWORD
        result = logged_in.login("alice", "new")
        assert result.success
        assert result.value.balance == Decimal("7")

    def test_delete_active_account(self, logged_in, directory, store):
        result = logged_in.delete_account("alice", "pw")

        assert result.success
        assert logged_in.state is SessionState.ANONYMOUS
        assert "alice" not in directory.load_all()
        assert not store.exists("alice")

    def test_delete_preserves_other_users(self, session, directory):
        for name in ("alice", "bob", "carol"):
            session.register(name, "pw")
            session.logout()
        assert session.delete_account("bob", "pw").success
        assert directory.names() == ["alice", "carol"]
        assert directory.path.read_text(encoding="utf-8").splitlines() == ["alice", "carol"]

    def test_delete_wrong_password(self, logged_in, directory):
        logged_in.logout()
        result = logged_in.delete_account("alice", "nope")
        assert result.error_kind is ErrorKind.WRONG_PASSWORD
        assert "alice" in directory

    def test_delete_unknown(self, session):
        assert session.delete_account("ghost", "pw").error_kind is ErrorKind.NOT_FOUND

    def test_delete_other_user_while_active(self, session):
        session.register("bob", "pw")
        session.logout()
        session.register("alice", "pw")
        assert session.delete_account("bob", "pw").error_kind is ErrorKind.SESSION_ACTIVE

    def test_delete_orphan_directory_entry(self, session, directory):
        directory.register("orphan")
        result = session.delete_account("orphan", "pw")
        assert result.success
        assert result.has_warnings
        assert "orphan" not in directory


class TestExitAndAudit:
    """Tests for session termination and the audit trail."""

    def test_exit_saves_and_terminates(self, logged_in, store):
        logged_in.add_income(Decimal("3"), "x", d(1, 1, 2024))
        assert logged_in.exit().success
        assert logged_in.state is SessionState.TERMINATED
        assert logged_in.active is None
        assert store.load("alice", "pw").balance == Decimal("3")

    def test_nothing_works_after_exit(self, session):
        session.exit()
        assert session.login("alice", "pw").error_kind is ErrorKind.NO_ACTIVE_SESSION
        assert session.register("alice", "pw").error_kind is ErrorKind.NO_ACTIVE_SESSION

    def test_exit_with_failed_save_still_terminates(self, logged_in, store, monkeypatch):
        fail_saves(monkeypatch, store)
        result = logged_in.exit()
        assert result.error_kind is ErrorKind.IO_ERROR
        assert logged_in.state is SessionState.TERMINATED

    def test_audit_trail(self, session, audit_storage):
        session.register("alice", "pw")
        session.add_income(Decimal("1"), "x", d(1, 1, 2024))
        session.remove_entry(9)
        session.logout()
        session.login("alice", "bad")

        assert recorded_types(audit_storage) == [
            AuditEventType.ACCOUNT_REGISTERED,
            AuditEventType.ENTRY_ADDED,
            AuditEventType.OPERATION_REJECTED,
            AuditEventType.LOGOUT,
            AuditEventType.LOGIN_FAILED,
        ]

    def test_exit_records_save(self, logged_in, audit_storage):
        logged_in.exit()
        assert recorded_types(audit_storage)[-2:] == [
            AuditEventType.RECORD_SAVED,
            AuditEventType.SESSION_EXITED,
        ]

    def test_audit_never_contains_password(self, session, audit_storage):
        session.register("alice", "hunter2")
        session.change_password("swordfish")
        text = audit_storage.path.read_text(encoding="utf-8")
        assert "hunter2" not in text
        assert "swordfish" not in text

    def test_events_share_correlation_id(self, session, audit_storage):
        session.register("alice", "pw")
        session.logout()
        ids = {e.correlation_id for e in audit_storage.get_recent_events()}
        assert ids == {session.correlation_id}


class TestCreateSession:
    """Tests for the wiring factory."""

    def test_create_session_from_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_DATA_DIR", str(tmp_path / "data"))
        monkeypatch.setenv("LEDGER_STORAGE_REPORTS_DIR", str(tmp_path / "reports"))
        monkeypatch.setenv("LEDGER_AUDIT_LOG_FILE", str(tmp_path / "audit.jsonl"))
        from src.config import get_settings

        get_settings.cache_clear()
        try:
            session = create_session()
            assert session.register("alice", "pw").success
            assert (tmp_path / "data" / "users.txt").read_text(encoding="utf-8") == "alice\n"
            assert (tmp_path / "audit.jsonl").exists()
        finally:
            get_settings.cache_clear()

    def test_session_loads_existing_directory(self, tmp_path, monkeypatch):
        data = tmp_path / "data"
        data.mkdir()
        (data / "users.txt").write_text("alice\n", encoding="utf-8")
        monkeypatch.setenv("LEDGER_STORAGE_DATA_DIR", str(data))
        from src.config import get_settings

        get_settings.cache_clear()
        try:
            session = create_session()
            assert session.register("alice", "pw").error_kind is ErrorKind.DUPLICATE
        finally:
            get_settings.cache_clear()
