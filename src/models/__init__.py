"""
Data Models Package

This package contains all Pydantic models used by the finance ledger.
"""

from src.models.entry import (
    DateValue,
    EntryKind,
    InvalidDateError,
    LedgerEntry,
)
from src.models.account import (
    AccountRecord,
    CategoryReport,
    ErrorKind,
    OperationResult,
    SummaryReport,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entry models
    "DateValue",
    "EntryKind",
    "InvalidDateError",
    "LedgerEntry",
    # Account models
    "AccountRecord",
    "CategoryReport",
    "ErrorKind",
    "OperationResult",
    "SummaryReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
