"""
Business logic services.

Each service handles one domain area.
"""

from services.category_service import CategoryService, get_category_service
from services.product_service import ProductService, get_product_service
from services.inventory_service import InventoryService, get_inventory_service
from services.loyalty_service import LoyaltyService, get_loyalty_service
from services.import_validation_service import (
    CategoryCache,
    ImportValidationService,
    get_import_validation_service,
)
from services.import_service import (
    ImportService,
    RecordOutcome,
    get_import_service,
    merge_fields,
)
from services.import_session_service import (
    ImportSession,
    ImportSessionController,
    get_import_session_controller,
)

__all__ = [
    "CategoryService",
    "get_category_service",
    "ProductService",
    "get_product_service",
    "InventoryService",
    "get_inventory_service",
    "LoyaltyService",
    "get_loyalty_service",
    "CategoryCache",
    "ImportValidationService",
    "get_import_validation_service",
    "ImportService",
    "RecordOutcome",
    "get_import_service",
    "merge_fields",
    "ImportSession",
    "ImportSessionController",
    "get_import_session_controller",
]
