"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ExternalServiceError,
    StorageError,

    # Attributes
    AttributeFetchError,
    InvalidAttributeClassError,

    # Exception store
    ExceptionNotFoundError,
    InvalidBackupError,
    BackupNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ExternalServiceError",
    "StorageError",

    # Attributes
    "AttributeFetchError",
    "InvalidAttributeClassError",

    # Exception store
    "ExceptionNotFoundError",
    "InvalidBackupError",
    "BackupNotFoundError",
]
