"""
Shared fixtures.

All file I/O happens under pytest's tmp_path; key generation uses a
seeded RNG so records are reproducible.
"""

import random
from decimal import Decimal

import pytest

from src.audit import AuditLogger
from src.config import CipherSettings, StorageSettings
from src.ledger import Ledger
from src.models.account import AccountRecord
from src.models.entry import DateValue, LedgerEntry
from src.orchestrator import LedgerSession
from src.reports import ReportWriter
from src.services.storage import (
    AccountKeyCipher,
    AccountStoreInterface,
    FlatFileAccountStore,
    FlatFileUserDirectory,
    JsonLinesAuditStorage,
    NotFoundError,
)


class InMemoryAccountStore(AccountStoreInterface):
    """Records ledgers by username and counts saves; no password gate."""

    def __init__(self):
        self.saved: dict[str, tuple] = {}
        self.save_count = 0
        self.deleted: list[str] = []

    def save(self, ledger):
        self.save_count += 1
        self.saved[ledger.username] = (ledger.balance, ledger.entries, ledger.password)

    def read_record(self, username):
        if username not in self.saved:
            raise NotFoundError(username)
        balance, entries, _ = self.saved[username]
        return AccountRecord(
            account_key=b"k",
            obfuscated_password=b"",
            username=username,
            stored_balance=balance,
            entries=entries,
        )

    def unlock(self, record, username, password):
        ledger = Ledger(username, password, record.account_key)
        for entry in record.entries:
            ledger.add_entry(entry)
        ledger.attach_store(self)
        return ledger

    def delete(self, username):
        self.deleted.append(username)
        self.saved.pop(username, None)

    def exists(self, username):
        return username in self.saved


def d(day: int, month: int, year: int) -> DateValue:
    return DateValue(day=day, month=month, year=year)


@pytest.fixture
def storage_settings(tmp_path):
    return StorageSettings(
        data_dir=tmp_path / "data",
        reports_dir=tmp_path / "reports",
    )


@pytest.fixture
def cipher():
    return AccountKeyCipher(CipherSettings(), rng=random.Random(1234))


@pytest.fixture
def store(storage_settings, cipher):
    return FlatFileAccountStore(storage_settings, cipher)


@pytest.fixture
def directory(storage_settings):
    return FlatFileUserDirectory(storage_settings)


@pytest.fixture
def memory_store():
    return InMemoryAccountStore()


@pytest.fixture
def audit_storage(tmp_path):
    return JsonLinesAuditStorage(tmp_path / "audit" / "events.jsonl")


@pytest.fixture
def session(directory, store, cipher, audit_storage, storage_settings):
    return LedgerSession(
        directory=directory,
        store=store,
        cipher=cipher,
        audit_logger=AuditLogger(audit_storage),
        report_writer=ReportWriter(storage_settings),
    )


@pytest.fixture
def sample_entries():
    return [
        LedgerEntry.income(Decimal("1000"), "salary", d(1, 1, 2024)),
        LedgerEntry.expense(Decimal("200"), "food", d(15, 1, 2024), "Food"),
    ]
