"""
Loyalty member service.

Members are global and keyed by loyalty ID; enrollments tie a member to a
store's program, one row per (member_id, store_id).
"""

from typing import Any, Optional
import structlog

from config import get_supabase_client
from models.loyalty import LoyaltyMemberResponse, LoyaltyEnrollmentResponse
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class LoyaltyService:
    """
    Loyalty business logic used by member imports.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.members_table = "loyalty_members"
        self.enrollments_table = "loyalty_enrollments"

    # ===================
    # MEMBERS
    # ===================

    def get_by_loyalty_id(self, loyalty_id: str) -> Optional[LoyaltyMemberResponse]:
        """Get a member by loyalty ID, or None."""
        logger.debug("getting_member_by_loyalty_id", loyalty_id=loyalty_id)

        try:
            result = (
                self.db.table(self.members_table)
                .select("*")
                .eq("loyalty_id", loyalty_id.strip())
                .limit(1)
                .execute()
            )

            if not result.data:
                return None

            return LoyaltyMemberResponse(**result.data[0])

        except Exception as e:
            logger.error("get_member_failed", loyalty_id=loyalty_id, error=str(e))
            raise DatabaseError("select", str(e))

    def create_member(self, data: dict[str, Any]) -> LoyaltyMemberResponse:
        """Insert a member. data must include loyalty_id and full_name."""
        logger.info("creating_member", loyalty_id=data.get("loyalty_id"))

        try:
            result = (
                self.db.table(self.members_table)
                .insert(data)
                .execute()
            )
            return LoyaltyMemberResponse(**result.data[0])

        except Exception as e:
            logger.error("create_member_failed", loyalty_id=data.get("loyalty_id"), error=str(e))
            raise DatabaseError("insert", str(e))

    def update_member(self, member_id: str, data: dict[str, Any]) -> Optional[LoyaltyMemberResponse]:
        """Update the given columns of a member. None when nothing changes."""
        if not data:
            return None

        try:
            result = (
                self.db.table(self.members_table)
                .update(data)
                .eq("id", member_id)
                .execute()
            )

            if not result.data:
                raise DatabaseError("update", f"member {member_id} not updated")

            return LoyaltyMemberResponse(**result.data[0])

        except DatabaseError:
            raise
        except Exception as e:
            logger.error("update_member_failed", member_id=member_id, error=str(e))
            raise DatabaseError("update", str(e))

    # ===================
    # ENROLLMENTS
    # ===================

    def get_enrollment(self, member_id: str, store_id: str) -> Optional[LoyaltyEnrollmentResponse]:
        """Get a member's enrollment in a store, or None."""
        try:
            result = (
                self.db.table(self.enrollments_table)
                .select("*")
                .eq("member_id", member_id)
                .eq("store_id", store_id)
                .limit(1)
                .execute()
            )

            if not result.data:
                return None

            return LoyaltyEnrollmentResponse(**result.data[0])

        except Exception as e:
            logger.error(
                "get_enrollment_failed",
                member_id=member_id,
                store_id=store_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def create_enrollment(
        self,
        member_id: str,
        store_id: str,
        data: dict[str, Any],
    ) -> LoyaltyEnrollmentResponse:
        """Enroll a member in a store's program."""
        try:
            result = (
                self.db.table(self.enrollments_table)
                .insert({**data, "member_id": member_id, "store_id": store_id})
                .execute()
            )
            return LoyaltyEnrollmentResponse(**result.data[0])

        except Exception as e:
            logger.error(
                "create_enrollment_failed",
                member_id=member_id,
                store_id=store_id,
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

    def update_enrollment(
        self,
        enrollment_id: str,
        data: dict[str, Any],
    ) -> Optional[LoyaltyEnrollmentResponse]:
        """Update the given columns of an enrollment. None when nothing changes."""
        if not data:
            return None

        try:
            result = (
                self.db.table(self.enrollments_table)
                .update(data)
                .eq("id", enrollment_id)
                .execute()
            )

            if not result.data:
                raise DatabaseError("update", f"enrollment {enrollment_id} not updated")

            return LoyaltyEnrollmentResponse(**result.data[0])

        except DatabaseError:
            raise
        except Exception as e:
            logger.error("update_enrollment_failed", enrollment_id=enrollment_id, error=str(e))
            raise DatabaseError("update", str(e))


# Singleton instance
_loyalty_service: Optional[LoyaltyService] = None


def get_loyalty_service() -> LoyaltyService:
    """Get or create LoyaltyService instance."""
    global _loyalty_service
    if _loyalty_service is None:
        _loyalty_service = LoyaltyService()
    return _loyalty_service
