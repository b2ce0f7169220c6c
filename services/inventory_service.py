"""
Store inventory service.

One inventory row per (product_id, store_id). Imports upsert on that pair:
the same product imported into a second store gets a second row.
"""

from typing import Any, Optional
import structlog

from config import get_supabase_client
from models.inventory import InventoryItemResponse
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class InventoryService:
    """
    Inventory business logic.

    Handles lookups and writes of store-scoped stock rows.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "inventory"

    def get_for_store(self, product_id: str, store_id: str) -> Optional[InventoryItemResponse]:
        """
        Get the inventory row of a product in a store.

        Returns:
            InventoryItemResponse or None if the product is not stocked there
        """
        logger.debug("getting_store_inventory", product_id=product_id, store_id=store_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("product_id", product_id)
                .eq("store_id", store_id)
                .limit(1)
                .execute()
            )

            if not result.data:
                return None

            return InventoryItemResponse(**result.data[0])

        except Exception as e:
            logger.error(
                "get_store_inventory_failed",
                product_id=product_id,
                store_id=store_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def create(self, product_id: str, store_id: str, data: dict[str, Any]) -> InventoryItemResponse:
        """Insert a stock row for a product in a store."""
        logger.debug("creating_store_inventory", product_id=product_id, store_id=store_id)

        try:
            result = (
                self.db.table(self.table)
                .insert({**data, "product_id": product_id, "store_id": store_id})
                .execute()
            )
            return InventoryItemResponse(**result.data[0])

        except Exception as e:
            logger.error(
                "create_store_inventory_failed",
                product_id=product_id,
                store_id=store_id,
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

    def update(self, inventory_id: str, data: dict[str, Any]) -> Optional[InventoryItemResponse]:
        """Update the given columns of a stock row. None when nothing changes."""
        if not data:
            return None

        try:
            result = (
                self.db.table(self.table)
                .update(data)
                .eq("id", inventory_id)
                .execute()
            )

            if not result.data:
                raise DatabaseError("update", f"inventory {inventory_id} not updated")

            return InventoryItemResponse(**result.data[0])

        except DatabaseError:
            raise
        except Exception as e:
            logger.error(
                "update_store_inventory_failed",
                inventory_id=inventory_id,
                error=str(e)
            )
            raise DatabaseError("update", str(e))


# Singleton instance
_inventory_service: Optional[InventoryService] = None


def get_inventory_service() -> InventoryService:
    """Get or create InventoryService instance."""
    global _inventory_service
    if _inventory_service is None:
        _inventory_service = InventoryService()
    return _inventory_service
