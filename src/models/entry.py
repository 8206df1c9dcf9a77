"""
Ledger Entry Models

An entry is one income or expense event. Entries are value objects:
once created they never change, and copying one is structural.

DESIGN DECISION: Income and Expense are a single tagged model with an
explicit ``kind`` discriminant. Aggregation and serialization branch on
``kind``; nothing inspects Python types at runtime.
"""

import re
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# Leading-integer parse of "day/month/year", mirroring scanf("%d/%d/%d"):
# each field is optional once the previous one failed to match.
_DATE_PATTERN = re.compile(
    r"\s*([+-]?\d+)(?:/\s*([+-]?\d+)(?:/\s*([+-]?\d+))?)?"
)

_THIRTY_DAY_MONTHS = {4, 6, 9, 11}


class InvalidDateError(ValueError):
    """A date failed its validity check."""

    def __init__(self, value: "DateValue"):
        super().__init__(f"Invalid date: {value}")
        self.value = value


# =============================================================================
# DATES
# =============================================================================

class DateValue(BaseModel):
    """
    Calendar date used as a filtering key.

    Validity is NOT enforced at construction. Call ``is_valid()`` (or
    ``require_valid()``) where a caller-supplied date enters the system.
    Records loaded from disk may legitimately hold invalid dates.
    """
    model_config = ConfigDict(frozen=True)

    day: int
    month: int
    year: int

    @classmethod
    def parse(cls, text: str) -> "DateValue":
        """
        Parse ``day/month/year`` permissively.

        Fields that cannot be read become 0; this never raises.
        """
        values = [0, 0, 0]
        match = _DATE_PATTERN.match(text or "")
        if match:
            for i, group in enumerate(match.groups()):
                if group is not None:
                    values[i] = int(group)
        day, month, year = values
        return cls(day=day, month=month, year=year)

    def is_valid(self) -> bool:
        """
        Check the date against calendar rules.

        Leap years are every year divisible by 4 (no century rule).
        """
        if self.day < 1 or self.day > 31:
            return False
        if self.month < 1 or self.month > 12 or self.year < 0:
            return False
        if self.month in _THIRTY_DAY_MONTHS and self.day > 30:
            return False
        if self.month == 2:
            limit = 29 if self.year % 4 == 0 else 28
            return self.day <= limit
        return True

    def require_valid(self) -> "DateValue":
        """Return self, or raise InvalidDateError."""
        if not self.is_valid():
            raise InvalidDateError(self)
        return self

    def in_range(self, lo: "DateValue", hi: "DateValue") -> bool:
        """
        Per-field range test.

        Year, month and day are each compared to their own bounds. This is
        not a chronological comparison: 5/2/2024 is outside 10/1/2024..20/3/2024
        because its day is below 10.
        """
        return (
            lo.year <= self.year <= hi.year
            and lo.month <= self.month <= hi.month
            and lo.day <= self.day <= hi.day
        )

    def __str__(self) -> str:
        return f"{self.day}/{self.month}/{self.year}"


# =============================================================================
# ENTRIES
# =============================================================================

class EntryKind(str, Enum):
    """Entry discriminant. Values double as the record type tags."""
    INCOME = "Income"
    EXPENSE = "Expense"


class LedgerEntry(BaseModel):
    """
    One income or expense.

    ``category`` is required for expenses and must be absent for income.
    """
    model_config = ConfigDict(frozen=True)

    kind: EntryKind = Field(
        ...,
        description="Income or Expense"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in BDT"
    )
    description: str = Field(
        default="",
        description="Free text, single line"
    )
    date: DateValue
    category: Optional[str] = Field(
        default=None,
        description="Expense category label"
    )

    @field_validator('description', 'category')
    @classmethod
    def reject_line_breaks(cls, v: Optional[str]) -> Optional[str]:
        """Records are line-delimited; text fields must fit on one line."""
        if v is not None and ("\n" in v or "\r" in v):
            raise ValueError("Text fields cannot contain line breaks")
        return v

    @model_validator(mode='after')
    def validate_category(self) -> 'LedgerEntry':
        """Expenses carry a category, income never does."""
        if self.kind is EntryKind.EXPENSE and self.category is None:
            raise ValueError("Expense entries require a category")
        if self.kind is EntryKind.INCOME and self.category is not None:
            raise ValueError("Income entries cannot have a category")
        return self

    @classmethod
    def income(
        cls,
        amount: Decimal,
        description: str,
        date: DateValue,
    ) -> "LedgerEntry":
        return cls(
            kind=EntryKind.INCOME,
            amount=amount,
            description=description,
            date=date,
        )

    @classmethod
    def expense(
        cls,
        amount: Decimal,
        description: str,
        date: DateValue,
        category: str,
    ) -> "LedgerEntry":
        return cls(
            kind=EntryKind.EXPENSE,
            amount=amount,
            description=description,
            date=date,
            category=category,
        )

    @property
    def is_income(self) -> bool:
        return self.kind is EntryKind.INCOME

    @property
    def is_expense(self) -> bool:
        return self.kind is EntryKind.EXPENSE

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this entry on the balance."""
        if self.kind is EntryKind.INCOME:
            return self.amount
        return -self.amount
