"""
Custom exception classes for the application.

Error responses share one shape: {"error": {code, message, details, timestamp}}.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "EPW_EXCEPTION_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class StorageError(AppError):
    """Key-value store operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="STORAGE_ERROR",
            message=f"Storage {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# EPW ATTRIBUTE ERRORS
# ===================

class AttributeFetchError(ExternalServiceError):
    """Remote attribute list could not be fetched."""

    def __init__(self, attribute_class: str, message: str):
        super().__init__(
            service="epw_attributes",
            message=message,
            details={"attribute_class": attribute_class}
        )


class InvalidAttributeClassError(ValidationError):
    """Unknown attribute class name."""

    def __init__(self, name: str, valid: list[str]):
        super().__init__(
            code="INVALID_ATTRIBUTE_CLASS",
            message=f"Unknown attribute class: {name}",
            details={"provided": name, "valid": valid}
        )


# ===================
# EPW EXCEPTION STORE ERRORS
# ===================

class ExceptionNotFoundError(NotFoundError):
    """No manual exception stored for a code."""

    def __init__(self, code: str):
        super().__init__(
            resource="EPW exception",
            identifier=code,
            code="EPW_EXCEPTION_NOT_FOUND"
        )


class InvalidBackupError(ValidationError):
    """Imported backup document is malformed."""

    def __init__(self, message: str = "Backup document must contain data.exceptions as a list"):
        super().__init__(
            code="INVALID_BACKUP",
            message=message
        )


class BackupNotFoundError(NotFoundError):
    """No backup snapshot available to restore."""

    def __init__(self, key: str):
        super().__init__(
            resource="Backup",
            identifier=key,
            code="BACKUP_NOT_FOUND"
        )
