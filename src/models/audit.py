"""
Audit Models for the Finance Ledger

Every session operation produces an audit event: registrations, logins,
entry changes, saves and report exports. Events are append-only.

Passwords (plain or obfuscated) never appear in an event.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Account lifecycle
    ACCOUNT_REGISTERED = "account_registered"
    ACCOUNT_DELETED = "account_deleted"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    SESSION_EXITED = "session_exited"
    PASSWORD_CHANGED = "password_changed"

    # Ledger mutations
    ENTRY_ADDED = "entry_added"
    ENTRY_REMOVED = "entry_removed"

    # Persistence
    RECORD_SAVED = "record_saved"
    SAVE_FAILED = "save_failed"
    BALANCE_MISMATCH = "balance_mismatch"

    # Reports
    REPORT_GENERATED = "report_generated"
    REPORT_EXPORTED = "report_exported"

    # Rejections
    OPERATION_REJECTED = "operation_rejected"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    username: Optional[str] = Field(
        default=None,
        description="Account the event relates to"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by the events of one session"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "username": self.username,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_json_line(self) -> str:
        """Serialize as one JSON line for append-only storage."""
        return json.dumps(self.to_log_dict(), default=str)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_added("alice", "Income", "1000", 0, correlation_id)
    """

    @staticmethod
    def account_registered(
        username: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_REGISTERED,
            username=username,
            correlation_id=correlation_id,
            description=f"Account registered: {username}",
        )

    @staticmethod
    def account_deleted(
        username: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=AuditSeverity.WARNING,
            username=username,
            correlation_id=correlation_id,
            description=f"Account deleted: {username}",
        )

    @staticmethod
    def login_succeeded(
        username: str,
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            username=username,
            correlation_id=correlation_id,
            description=f"User {username} logged in",
            details={"entry_count": entry_count},
        )

    @staticmethod
    def login_failed(
        username: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            username=username,
            correlation_id=correlation_id,
            description=f"Login failed for {username}",
            error_code=reason,
        )

    @staticmethod
    def logout(
        username: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGOUT,
            username=username,
            correlation_id=correlation_id,
            description=f"User {username} logged out",
        )

    @staticmethod
    def session_exited(
        username: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_EXITED,
            username=username,
            correlation_id=correlation_id,
            description="Session terminated",
        )

    @staticmethod
    def password_changed(
        username: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PASSWORD_CHANGED,
            username=username,
            correlation_id=correlation_id,
            description=f"Password changed for {username}",
        )

    @staticmethod
    def entry_added(
        username: str,
        kind: str,
        amount: str,
        index: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            username=username,
            correlation_id=correlation_id,
            description=f"{kind} of {amount} BDT added",
            details={"kind": kind, "amount": amount, "index": index},
        )

    @staticmethod
    def entry_removed(
        username: str,
        kind: str,
        amount: str,
        index: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REMOVED,
            username=username,
            correlation_id=correlation_id,
            description=f"{kind} of {amount} BDT removed",
            details={"kind": kind, "amount": amount, "index": index},
        )

    @staticmethod
    def record_saved(
        username: str,
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_SAVED,
            severity=AuditSeverity.DEBUG,
            username=username,
            correlation_id=correlation_id,
            description=f"Record for {username} written",
            details={"entry_count": entry_count},
        )

    @staticmethod
    def save_failed(
        username: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            username=username,
            correlation_id=correlation_id,
            description="Record could not be saved; memory and disk have diverged",
            error_message=error_message,
        )

    @staticmethod
    def balance_mismatch(
        username: str,
        stored: str,
        replayed: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_MISMATCH,
            severity=AuditSeverity.WARNING,
            username=username,
            correlation_id=correlation_id,
            description="Stored balance differs from the replayed entries",
            details={"stored_balance": stored, "replayed_balance": replayed},
        )

    @staticmethod
    def report_generated(
        username: str,
        report_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            severity=AuditSeverity.DEBUG,
            username=username,
            correlation_id=correlation_id,
            description=f"{report_type} report generated",
            details={"report_type": report_type},
        )

    @staticmethod
    def report_exported(
        username: str,
        report_type: str,
        path: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_EXPORTED,
            username=username,
            correlation_id=correlation_id,
            description=f"{report_type} report written to {path}",
            details={"report_type": report_type, "path": path},
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        error_code: str,
        error_message: str,
        username: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            username=username,
            correlation_id=correlation_id,
            description=f"{operation} rejected",
            error_code=error_code,
            error_message=error_message,
            details={"operation": operation},
        )
