"""
Store inventory schemas for validation and serialization.
"""

from pydantic import Field
from typing import Optional
from datetime import date

from models.base import BaseSchema, TimestampMixin


class InventoryItemResponse(BaseSchema, TimestampMixin):
    """
    Stock of one product in one store.

    Unique on (product_id, store_id).
    """

    id: str = Field(..., description="Inventory row UUID")
    product_id: str = Field(..., description="Product UUID")
    store_id: str = Field(..., description="Store UUID")
    quantity: int = Field(default=0, ge=0, description="Units on hand")
    minimum_level: Optional[int] = Field(None, ge=0, description="Low-stock alert level")
    expiry_date: Optional[date] = Field(None, description="Earliest expiry of stock on hand")
