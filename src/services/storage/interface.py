"""
Abstract Storage Interface

Three contracts:
1. AccountStoreInterface - one durable record per account
2. UserDirectoryInterface - the registered-username index
3. AuditStorageInterface - append-only audit trail

The flat-file implementations live in ``flat_file.py``. Tests and other
backends only need to honour these signatures and raise the exceptions
defined at the bottom of this module.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from src.models.account import AccountRecord
from src.models.audit import AuditEvent

if TYPE_CHECKING:
    from src.ledger.account import Ledger


class AccountStoreInterface(ABC):
    """
    Abstract interface for account record storage.

    The store owns the on-disk record format. Nothing else reads or
    writes account records.
    """

    @abstractmethod
    def save(self, ledger: "Ledger") -> None:
        """
        Fully overwrite the account record with the ledger's state.

        Raises:
            RecordIOError: If the record cannot be opened or written
        """
        pass

    @abstractmethod
    def read_record(self, username: str) -> AccountRecord:
        """
        Parse a record without checking the password.

        Raises:
            NotFoundError: If no record exists for the username
            RecordFormatError: If an entry block cannot be read
        """
        pass

    @abstractmethod
    def unlock(
        self,
        record: AccountRecord,
        username: str,
        password: str,
    ) -> "Ledger":
        """
        Apply the password gate to a parsed record and rebuild the ledger.

        Raises:
            AuthError: On username mismatch or wrong password
        """
        pass

    def load(self, username: str, password: str) -> "Ledger":
        """
        Read, verify and rebuild an account.

        Raises:
            NotFoundError: If no record exists for the username
            AuthError: On username mismatch or wrong password
        """
        return self.unlock(self.read_record(username), username, password)

    @abstractmethod
    def delete(self, username: str) -> None:
        """Remove the record. A missing record is not an error."""
        pass

    @abstractmethod
    def exists(self, username: str) -> bool:
        pass


class UserDirectoryInterface(ABC):
    """
    Abstract interface for the set of registered usernames.

    Usernames are unique. Order is registration order minus removals.
    """

    @abstractmethod
    def load_all(self) -> set[str]:
        """
        (Re)read the index. A missing index is an empty directory.
        """
        pass

    @abstractmethod
    def names(self) -> list[str]:
        """Registered usernames in registration order."""
        pass

    @abstractmethod
    def register(self, username: str) -> None:
        """
        Add a username.

        Raises:
            InvalidUsernameError: If the name is empty, multi-line, a path,
                or would collide with the index file
            DuplicateError: If the username is already registered
            RecordIOError: If the index cannot be written
        """
        pass

    @abstractmethod
    def remove(self, username: str) -> None:
        """
        Remove a username.

        Raises:
            NotFoundError: If the username is not registered
            RecordIOError: If the index cannot be rewritten
        """
        pass

    @abstractmethod
    def contains(self, username: str) -> bool:
        pass

    def __contains__(self, username: object) -> bool:
        return isinstance(username, str) and self.contains(username)


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events, newest first.
        """
        pass


class AuthFailure(str, Enum):
    """Why the password gate refused a record."""
    USERNAME_MISMATCH = "username_mismatch"
    WRONG_PASSWORD = "wrong_password"


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class AuthError(StorageError):
    """The record exists but the credentials do not match it."""

    def __init__(self, kind: AuthFailure, username: str):
        if kind is AuthFailure.USERNAME_MISMATCH:
            message = f"Invalid username: record does not belong to {username}"
        else:
            message = f"Invalid password for {username}"
        super().__init__(message)
        self.kind = kind
        self.username = username


class RecordIOError(StorageError):
    """A record, index or report file could not be opened or written."""
    pass


class RecordFormatError(StorageError):
    """A record could not be parsed."""
    pass


class InvalidUsernameError(ValueError):
    """A username that cannot name an account record."""

    def __init__(self, username: str, reason: str):
        super().__init__(f"Invalid username {username!r}: {reason}")
        self.username = username
        self.reason = reason
