"""
Pydantic models for validation and serialization.

"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.product import (
    CategoryCreate,
    CategoryResponse,
    ProductResponse,
)
from models.inventory import (
    InventoryItemResponse,
)
from models.loyalty import (
    LoyaltyMemberResponse,
    LoyaltyEnrollmentResponse,
)
from models.imports import (
    DataType,
    FieldKind,
    ImportState,
    TargetFieldSpec,
    TARGET_FIELDS,
    get_target_fields,
    get_required_fields,
    ColumnMapping,
    AnalysisResult,
    RowValidationError,
    MissingField,
    ProductImportRecord,
    LoyaltyMemberImportRecord,
    ImportRecord,
    ValidationResult,
    FailedRecord,
    ImportResult,
    MappingUpdate,
    StoreSelection,
    ImportSessionResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",

    # Catalog
    "CategoryCreate",
    "CategoryResponse",
    "ProductResponse",
    "InventoryItemResponse",
    "LoyaltyMemberResponse",
    "LoyaltyEnrollmentResponse",

    # Imports
    "DataType",
    "FieldKind",
    "ImportState",
    "TargetFieldSpec",
    "TARGET_FIELDS",
    "get_target_fields",
    "get_required_fields",
    "ColumnMapping",
    "AnalysisResult",
    "RowValidationError",
    "MissingField",
    "ProductImportRecord",
    "LoyaltyMemberImportRecord",
    "ImportRecord",
    "ValidationResult",
    "FailedRecord",
    "ImportResult",
    "MappingUpdate",
    "StoreSelection",
    "ImportSessionResponse",
]
