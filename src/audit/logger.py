"""
Audit Logger

Every session operation is logged as an AuditEvent:
- locally, through structlog as JSON
- optionally, to an AuditStorageInterface (e.g. a JSON-lines file)

A storage failure is logged and reported through the return value; it never
interrupts the operation being audited.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditSeverity
from src.services.storage.interface import AuditStorageInterface, StorageError


structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


_LEVELS = {
    AuditSeverity.DEBUG: logging.DEBUG,
    AuditSeverity.INFO: logging.INFO,
    AuditSeverity.WARNING: logging.WARNING,
    AuditSeverity.ERROR: logging.ERROR,
    AuditSeverity.CRITICAL: logging.CRITICAL,
}


class AuditLogger:
    """
    Central audit logging service.

    Args:
        storage: Storage backend for persistence. If None, only logs locally.
        enabled: When False, events are dropped without logging.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        enabled: bool = True,
        logger_name: str = "ledger.audit",
    ):
        self._storage = storage
        self._enabled = enabled
        self._logger = structlog.get_logger(logger_name)

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the storage write succeeded (or no storage is configured).
        """
        if not self._enabled:
            return True

        self._logger.log(_LEVELS[event.severity], "audit_event", **event.to_log_dict())

        if self._storage is None:
            return True
        try:
            return self._storage.append_event(event)
        except StorageError as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at ``level``."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    One ID per session; every event of that session carries it.
    """
    return uuid4()
