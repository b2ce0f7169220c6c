"""
Product and category schemas for validation and serialization.
"""

from decimal import Decimal
from pydantic import Field, field_validator
from typing import Optional

from models.base import BaseSchema, TimestampMixin


class CategoryCreate(BaseSchema):
    """Create a new category."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category display name"
    )


class CategoryResponse(BaseSchema, TimestampMixin):
    """Category response with all fields."""

    id: str = Field(..., description="Category UUID")
    name: str = Field(..., description="Category display name")


class ProductResponse(BaseSchema, TimestampMixin):
    """
    Product response with all fields.

    Products are global: the SKU identifies one product across every store.
    """

    id: str = Field(..., description="Product UUID")
    sku: str = Field(..., description="Product SKU (natural key)")
    name: str = Field(..., description="Product name")
    category_id: Optional[str] = Field(None, description="Category UUID")
    price: Optional[Decimal] = Field(None, description="Retail price")
    cost_price: Optional[Decimal] = Field(None, description="Unit cost")
    description: Optional[str] = Field(None, description="Free-text description")
    barcode: Optional[str] = Field(None, description="Barcode (EAN/UPC)")
    image_url: Optional[str] = Field(None, description="Product image URL")
    supplier: Optional[str] = Field(None, description="Supplier name")
    is_perishable: bool = Field(default=False, description="Whether the product expires")

    @field_validator("sku")
    @classmethod
    def sku_uppercase(cls, v: str) -> str:
        """SKU is stored uppercase and trimmed."""
        return v.upper().strip()
