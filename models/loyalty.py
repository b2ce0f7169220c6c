"""
Loyalty member schemas for validation and serialization.
"""

from pydantic import Field, field_validator
from typing import Optional
from datetime import date

from models.base import BaseSchema, TimestampMixin


class LoyaltyMemberResponse(BaseSchema, TimestampMixin):
    """
    Loyalty member.

    Members are global: the loyalty ID identifies one member across stores.
    """

    id: str = Field(..., description="Member UUID")
    loyalty_id: str = Field(..., description="Loyalty card / member number")
    full_name: str = Field(..., description="Member full name")
    email: Optional[str] = Field(None, description="Email address")
    phone: Optional[str] = Field(None, description="Phone number")
    points: int = Field(default=0, ge=0, description="Current points balance")
    tier: Optional[str] = Field(None, description="Loyalty tier name")

    @field_validator("points", mode="before")
    @classmethod
    def default_points(cls, v):
        """Treat NULL balance as zero."""
        return 0 if v is None else v


class LoyaltyEnrollmentResponse(BaseSchema, TimestampMixin):
    """Membership of one member in one store's program."""

    id: str = Field(..., description="Enrollment UUID")
    member_id: str = Field(..., description="Member UUID")
    store_id: str = Field(..., description="Store UUID")
    enrollment_date: Optional[date] = Field(None, description="Date the member joined")
