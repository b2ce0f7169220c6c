"""
Category service.

Categories are auto-provisioned while validating inventory imports, so the
main entry point is get_or_create(): a lookup before every insert keeps the
table free of case variants of the same name.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.product import CategoryCreate, CategoryResponse
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so ilike() does an exact, case-insensitive match."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CategoryService:
    """
    Category business logic.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "categories"

    def get_all(self) -> list[CategoryResponse]:
        """All categories ordered by name."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .order("name")
                .execute()
            )
            return [CategoryResponse(**row) for row in result.data]

        except Exception as e:
            logger.error("get_categories_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_name(self, name: str) -> Optional[CategoryResponse]:
        """
        Get a category by name, ignoring case.

        Returns:
            CategoryResponse or None if not found
        """
        logger.debug("getting_category_by_name", name=name)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .ilike("name", _escape_like(name.strip()))
                .limit(1)
                .execute()
            )

            if not result.data:
                return None

            return CategoryResponse(**result.data[0])

        except Exception as e:
            logger.error("get_category_by_name_failed", name=name, error=str(e))
            raise DatabaseError("select", str(e))

    def create(self, name: str) -> CategoryResponse:
        """Insert a category without checking for an existing one."""
        logger.info("creating_category", name=name)

        try:
            payload = CategoryCreate(name=name)
            result = (
                self.db.table(self.table)
                .insert(payload.model_dump())
                .execute()
            )

            if not result.data:
                raise DatabaseError("insert", "no row returned")

            category = CategoryResponse(**result.data[0])
            logger.info("category_created", category_id=category.id, name=category.name)
            return category

        except DatabaseError:
            raise
        except Exception as e:
            logger.error("create_category_failed", name=name, error=str(e))
            raise DatabaseError("insert", str(e))

    def get_or_create(self, name: str) -> tuple[CategoryResponse, bool]:
        """
        Find a category by name or create it.

        Returns:
            Tuple of (category, created)
        """
        existing = self.get_by_name(name)
        if existing:
            return existing, False
        return self.create(name), True


# Singleton instance for convenience
_category_service: Optional[CategoryService] = None


def get_category_service() -> CategoryService:
    """Get or create CategoryService instance."""
    global _category_service
    if _category_service is None:
        _category_service = CategoryService()
    return _category_service
