"""
Custom exception classes for the application.

Every error raised by the import pipeline is an AppError so routes can
turn it into the standard error body with to_dict().
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "IMPORT_PARSE_ERROR")
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
        self.timestamp = datetime.utcnow().isoformat()
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


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DuplicateError(ConflictError):
    """Duplicate resource (409)."""

    def __init__(
        self,
        resource: str,
        field: str,
        value: str
    ):
        super().__init__(
            code=f"{resource.upper()}_{field.upper()}_EXISTS",
            message=f"{resource} with this {field} already exists",
            details={field: value}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# FILE PARSING ERRORS
# ===================

class ImportParseError(ValidationError):
    """Uploaded file could not be parsed. Fatal for analysis."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        code: str = "IMPORT_PARSE_ERROR"
    ):
        super().__init__(
            code=code,
            message=message,
            details=details
        )


class UnsupportedFileTypeError(ImportParseError):
    """File is neither CSV nor Excel."""

    def __init__(self, filename: Optional[str], content_type: Optional[str] = None):
        super().__init__(
            message="Unsupported file type. Please upload a CSV or Excel file.",
            details={"filename": filename, "content_type": content_type},
            code="IMPORT_UNSUPPORTED_FILE"
        )


# ===================
# CATALOG ERRORS
# ===================

class ProductSKUExistsError(DuplicateError):
    """Product SKU already exists."""

    def __init__(self, sku: str):
        super().__init__(
            resource="Product",
            field="sku",
            value=sku
        )


class CategoryCreationError(AppError):
    """Auto-provisioning a category failed."""

    def __init__(self, name: str, reason: str):
        super().__init__(
            code="CATEGORY_CREATION_FAILED",
            message=f"Failed to create category '{name}'",
            status_code=500,
            details={"category": name, "reason": reason}
        )


class ImportRowError(AppError):
    """A single record could not be written during import."""

    def __init__(self, natural_key: str, reason: str):
        super().__init__(
            code="IMPORT_ROW_FAILED",
            message=reason,
            status_code=500,
            details={"key": natural_key}
        )


# ===================
# IMPORT SESSION ERRORS
# ===================

class ImportSessionNotFoundError(NotFoundError):
    """Import session expired or never existed."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Import session",
            identifier=session_id,
            code="IMPORT_SESSION_NOT_FOUND"
        )


class ImportStepError(ValidationError):
    """A wizard step was requested while its guard is not satisfied."""

    def __init__(self, current_state: str, requested: str, reason: str):
        super().__init__(
            code="IMPORT_STEP_NOT_ALLOWED",
            message=f"Cannot move from {current_state} to {requested}: {reason}",
            details={
                "current_state": current_state,
                "requested": requested,
                "reason": reason
            }
        )


class StoreNotSelectedError(ValidationError):
    """Import attempted without a destination store."""

    def __init__(self):
        super().__init__(
            code="IMPORT_STORE_REQUIRED",
            message="Select a destination store before importing"
        )
