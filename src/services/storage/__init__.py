"""
Storage Services Package

Provides abstract interfaces and the flat-file implementations for
account records, the user directory and the audit trail.
"""

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
    StorageError,
    UserDirectoryInterface,
)
from src.services.storage.cipher import AccountKeyCipher
from src.services.storage.flat_file import (
    FlatFileAccountStore,
    FlatFileUserDirectory,
    JsonLinesAuditStorage,
)

__all__ = [
    # Interfaces
    "AccountStoreInterface",
    "AuditStorageInterface",
    "UserDirectoryInterface",
    # Exceptions
    "AuthError",
    "AuthFailure",
    "DuplicateError",
    "InvalidUsernameError",
    "NotFoundError",
    "RecordFormatError",
    "RecordIOError",
    "StorageError",
    # Flat-file implementation
    "AccountKeyCipher",
    "FlatFileAccountStore",
    "FlatFileUserDirectory",
    "JsonLinesAuditStorage",
]
