"""
Supabase connection for the import services.

Every service module calls get_supabase_client() in its constructor; tests
patch that name per module.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)

# Tables the import pipeline writes to
IMPORT_TABLES = ("products", "categories", "inventory", "loyalty_members", "loyalty_enrollments")


class SupabaseConnectionError(Exception):
    """Could not reach Supabase."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Cached Supabase client.

    Call get_supabase_client.cache_clear() to reconnect.

    Raises:
        SupabaseConnectionError: If the first query fails
    """
    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        key = settings.supabase_service_key or settings.supabase_key
        client = create_client(settings.supabase_url, key)

        client.table("categories").select("id").limit(1).execute()

        logger.info("supabase_connected", service_role=bool(settings.supabase_service_key))
        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise SupabaseConnectionError(f"Failed to connect to Supabase: {e}") from e


def check_connection() -> dict:
    """
    Health check with row counts of the import tables.

    Returns:
        {"status": "healthy", "<table>_count": n, ...} or
        {"status": "unhealthy", "error": "..."}
    """
    try:
        client = get_supabase_client()
        status = {"status": "healthy"}
        for table in IMPORT_TABLES:
            result = client.table(table).select("id", count="exact").execute()
            status[f"{table}_count"] = result.count
        return status

    except Exception as e:
        logger.warning("health_check_failed", error=str(e))
        return {
            "status": "unhealthy",
            "error": str(e)
        }
