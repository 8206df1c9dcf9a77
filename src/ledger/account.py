"""
Ledger - the in-memory account aggregate.

Holds one account's entries in insertion order and keeps the running
balance equal to the signed sum of those entries. Every mutation ends by
handing the whole ledger to the attached store.

A save failure propagates to the caller after the in-memory change has
been applied. There is no rollback.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from src.models.account import CategoryReport, SummaryReport
from src.models.entry import DateValue, EntryKind, LedgerEntry

if TYPE_CHECKING:
    from src.services.storage.interface import AccountStoreInterface


class EntryIndexError(IndexError):
    """Entry index outside [0, len(entries))."""

    def __init__(self, index: int, size: int):
        super().__init__(f"Entry index {index} out of range (ledger holds {size} entries)")
        self.index = index
        self.size = size


class Ledger:
    """
    One account: identity, entries and running balance.

    Invariant after every completed mutation:
        balance == sum(income amounts) - sum(expense amounts)
    """

    def __init__(
        self,
        username: str,
        password: str,
        account_key: bytes,
        store: Optional["AccountStoreInterface"] = None,
    ):
        self._username = username
        self._password = password
        self._account_key = account_key
        self._balance = Decimal(0)
        self._entries: list[LedgerEntry] = []
        self._store = store

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def username(self) -> str:
        return self._username

    @property
    def password(self) -> str:
        return self._password

    @property
    def account_key(self) -> bytes:
        return self._account_key

    @property
    def balance(self) -> Decimal:
        return self._balance

    @property
    def entries(self) -> tuple[LedgerEntry, ...]:
        return tuple(self._entries)

    @property
    def store(self) -> Optional["AccountStoreInterface"]:
        return self._store

    def attach_store(self, store: Optional["AccountStoreInterface"]) -> None:
        """Set (or clear, with None) the store mutations persist to."""
        self._store = store

    def verify_password(self, candidate: str) -> bool:
        return self._password == candidate

    def rotate_key(self, account_key: bytes) -> None:
        if not account_key:
            raise ValueError("Account key cannot be empty")
        self._account_key = account_key

    def overall_balance(self) -> Decimal:
        return self._balance

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_entry(self, entry: LedgerEntry) -> None:
        """Append an entry, apply it to the balance, then persist."""
        self._entries.append(entry)
        self._balance += entry.signed_amount
        self._persist()

    def remove_entry(self, index: int) -> LedgerEntry:
        """
        Drop the entry at ``index``, reverse its balance effect, then persist.

        Raises:
            EntryIndexError: If index is outside [0, len(entries));
                the ledger is left untouched.
        """
        if not 0 <= index < len(self._entries):
            raise EntryIndexError(index, len(self._entries))
        entry = self._entries.pop(index)
        self._balance -= entry.signed_amount
        self._persist()
        return entry

    def change_password(self, new_password: str) -> None:
        """Replace the password, delete the record and write it again."""
        self._password = new_password
        if self._store is not None:
            self._store.delete(self._username)
            self._store.save(self)

    def _persist(self) -> None:
        if self._store is not None:
            self._store.save(self)

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    def _total(
        self,
        kind: EntryKind,
        lo: Optional[DateValue] = None,
        hi: Optional[DateValue] = None,
    ) -> Decimal:
        total = Decimal(0)
        for entry in self._entries:
            if entry.kind is not kind:
                continue
            if lo is not None and hi is not None and not entry.date.in_range(lo, hi):
                continue
            total += entry.amount
        return total

    def income_for_period(self, lo: DateValue, hi: DateValue) -> Decimal:
        return self._total(EntryKind.INCOME, lo, hi)

    def expenses_for_period(self, lo: DateValue, hi: DateValue) -> Decimal:
        return self._total(EntryKind.EXPENSE, lo, hi)

    def net_savings_for_period(self, lo: DateValue, hi: DateValue) -> Decimal:
        return self.income_for_period(lo, hi) - self.expenses_for_period(lo, hi)

    def expenses_by_category(self, category: str) -> Decimal:
        """Sum of expenses whose category equals ``category`` exactly."""
        return sum(
            (
                entry.amount
                for entry in self._entries
                if entry.kind is EntryKind.EXPENSE and entry.category == category
            ),
            Decimal(0),
        )

    def summary_report(self, lo: DateValue, hi: DateValue) -> SummaryReport:
        income = self.income_for_period(lo, hi)
        expenses = self.expenses_for_period(lo, hi)
        return SummaryReport(
            username=self._username,
            start=lo,
            end=hi,
            income_total=income,
            expense_total=expenses,
            net_savings=income - expenses,
        )

    def category_report(self, category: str) -> CategoryReport:
        return CategoryReport(
            username=self._username,
            category=category,
            category_total=self.expenses_by_category(category),
        )

    # -------------------------------------------------------------------------
    # Copying
    # -------------------------------------------------------------------------

    def clone(self) -> "Ledger":
        """
        Structural copy with no store attached.

        Entries are immutable, so the copy shares them; the list is new.
        """
        copy = Ledger(self._username, self._password, self._account_key)
        copy._entries = list(self._entries)
        copy._balance = self._balance
        return copy

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return (
            f"Ledger(username={self._username!r}, balance={self._balance}, "
            f"entries={len(self._entries)})"
        )
