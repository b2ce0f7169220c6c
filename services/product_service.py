"""
Product service for catalog writes made by imports.

Products are global; the SKU is the natural key across every store.
"""

from typing import Any, Optional
import structlog

from config import get_supabase_client
from models.product import ProductResponse
from exceptions import (
    ProductSKUExistsError,
    DatabaseError
)

logger = structlog.get_logger(__name__)


class ProductService:
    """
    Product business logic.

    Lookup by SKU, insert and partial update.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "products"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_by_sku(self, sku: str) -> Optional[ProductResponse]:
        """
        Get a product by SKU.

        Args:
            sku: Product SKU (compared uppercase)

        Returns:
            ProductResponse or None if not found
        """
        logger.debug("getting_product_by_sku", sku=sku)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("sku", sku.upper().strip())
                .limit(1)
                .execute()
            )

            if not result.data:
                return None

            return ProductResponse(**result.data[0])

        except Exception as e:
            logger.error(
                "get_product_by_sku_failed",
                sku=sku,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: dict[str, Any]) -> ProductResponse:
        """
        Insert a new product.

        Args:
            data: Column values; must include sku, name and price

        Returns:
            Created ProductResponse

        Raises:
            ProductSKUExistsError: If the database rejects a duplicate SKU
            DatabaseError: For any other failure
        """
        sku = str(data["sku"]).upper().strip()
        logger.info("creating_product", sku=sku)

        try:
            result = (
                self.db.table(self.table)
                .insert({**data, "sku": sku})
                .execute()
            )

            product = ProductResponse(**result.data[0])

            logger.info(
                "product_created",
                product_id=product.id,
                sku=product.sku
            )

            return product

        except Exception as e:
            logger.error(
                "create_product_failed",
                sku=sku,
                error=str(e)
            )
            if "duplicate key" in str(e).lower() or "23505" in str(e):
                raise ProductSKUExistsError(sku)
            raise DatabaseError("insert", str(e))

    def update(self, product_id: str, data: dict[str, Any]) -> Optional[ProductResponse]:
        """
        Update the given columns of a product.

        Args:
            product_id: Product UUID
            data: Only the columns to change

        Returns:
            Updated ProductResponse, or None when there was nothing to change
        """
        if not data:
            return None

        logger.info("updating_product", product_id=product_id, fields=list(data.keys()))

        try:
            result = (
                self.db.table(self.table)
                .update(data)
                .eq("id", product_id)
                .execute()
            )

            if not result.data:
                raise DatabaseError("update", f"product {product_id} not updated")

            return ProductResponse(**result.data[0])

        except DatabaseError:
            raise
        except Exception as e:
            logger.error(
                "update_product_failed",
                product_id=product_id,
                error=str(e)
            )
            raise DatabaseError("update", str(e))


# Singleton instance for convenience
_product_service: Optional[ProductService] = None

def get_product_service() -> ProductService:
    """Get or create ProductService instance."""
    global _product_service
    if _product_service is None:
        _product_service = ProductService()
    return _product_service
