"""Services package."""

from src.services.storage import (
    AccountKeyCipher,
    AccountStoreInterface,
    AuditStorageInterface,
    AuthError,
    AuthFailure,
    DuplicateError,
    InvalidUsernameError,
    FlatFileAccountStore,
    FlatFileUserDirectory,
    JsonLinesAuditStorage,
    NotFoundError,
    RecordFormatError,
    RecordIOError,
    StorageError,
    UserDirectoryInterface,
)

__all__ = [
    "AccountKeyCipher",
    "AccountStoreInterface",
    "AuditStorageInterface",
    "AuthError",
    "AuthFailure",
    "DuplicateError",
    "InvalidUsernameError",
    "FlatFileAccountStore",
    "FlatFileUserDirectory",
    "JsonLinesAuditStorage",
    "NotFoundError",
    "RecordFormatError",
    "RecordIOError",
    "StorageError",
    "UserDirectoryInterface",
]
