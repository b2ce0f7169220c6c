"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DuplicateError,
    DatabaseError,

    # File parsing
    ImportParseError,
    UnsupportedFileTypeError,

    # Catalog
    ProductSKUExistsError,
    CategoryCreationError,
    ImportRowError,

    # Import sessions
    ImportSessionNotFoundError,
    ImportStepError,
    StoreNotSelectedError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateError",
    "DatabaseError",

    # File parsing
    "ImportParseError",
    "UnsupportedFileTypeError",

    # Catalog
    "ProductSKUExistsError",
    "CategoryCreationError",
    "ImportRowError",

    # Import sessions
    "ImportSessionNotFoundError",
    "ImportStepError",
    "StoreNotSelectedError",
]
