"""
Account, Report and Result Models

- AccountRecord: the parsed content of an account record, before the
  password gate is applied.
- SummaryReport / CategoryReport: numeric report results. Rendering them
  is a separate concern (see src.reports).
- OperationResult: what every session operation returns. Expected failures
  are reported through ``error_kind`` instead of being raised.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.entry import DateValue, LedgerEntry


class AccountRecord(BaseModel):
    """Raw content of one account record."""
    model_config = ConfigDict(frozen=True)

    account_key: bytes = Field(
        ...,
        min_length=1,
        description="Per-account obfuscation key"
    )
    obfuscated_password: bytes = Field(
        ...,
        description="Password XORed with account_key"
    )
    username: str
    stored_balance: Optional[Decimal] = Field(
        default=None,
        description="Balance scalar written at save time (not trusted on load)"
    )
    entries: tuple[LedgerEntry, ...] = ()


# =============================================================================
# REPORTS
# =============================================================================

class SummaryReport(BaseModel):
    """Income, expenses and net savings over a period."""
    model_config = ConfigDict(frozen=True)

    username: str
    start: DateValue
    end: DateValue
    income_total: Decimal
    expense_total: Decimal
    net_savings: Decimal


class CategoryReport(BaseModel):
    """Total expenses for one category."""
    model_config = ConfigDict(frozen=True)

    username: str
    category: str
    category_total: Decimal


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class ErrorKind(str, Enum):
    """Why an operation did not succeed."""
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    USERNAME_MISMATCH = "username_mismatch"
    WRONG_PASSWORD = "wrong_password"
    INDEX_OUT_OF_RANGE = "index_out_of_range"
    IO_ERROR = "io_error"
    INVALID_DATE = "invalid_date"
    INVALID_ENTRY = "invalid_entry"
    INVALID_USERNAME = "invalid_username"
    MALFORMED_RECORD = "malformed_record"
    NO_ACTIVE_SESSION = "no_active_session"
    SESSION_ACTIVE = "session_active"


class OperationResult(BaseModel):
    """
    Outcome of a session operation.

    ``value`` carries the payload on success (a Ledger, a report, a balance).
    ``warnings`` are non-blocking and may accompany either outcome.
    """

    success: bool
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    value: Any = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def ok(
        cls,
        value: Any = None,
        message: str = "",
        warnings: Optional[list[str]] = None,
    ) -> "OperationResult":
        return cls(
            success=True,
            value=value,
            message=message,
            warnings=warnings or [],
        )

    @classmethod
    def fail(
        cls,
        error_kind: ErrorKind,
        message: str,
        warnings: Optional[list[str]] = None,
    ) -> "OperationResult":
        return cls(
            success=False,
            error_kind=error_kind,
            message=message,
            warnings=warnings or [],
        )

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)
