"""
Supabase connection management.

Only used when the key-value store runs on the supabase backend.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class ConnectionError(DatabaseError):
    """Failed to connect to database."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        ConnectionError: If not configured or connection fails
    """
    if not settings.supabase_configured:
        raise ConnectionError("Supabase is not configured (SUPABASE_URL / SUPABASE_KEY)")

    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url,
            settings.supabase_key
        )

        # Test connection with simple query
        client.table(settings.supabase_kv_table).select("key").limit(1).execute()

        logger.info("supabase_connected", status="success")
        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise ConnectionError(f"Failed to connect to Supabase: {e}") from e


# ===================
# HELPER FUNCTIONS
# ===================

def check_connection() -> dict:
    """
    Check Supabase key-value table health.

    Returns:
        dict: Connection status with details
    """
    try:
        client = get_supabase_client()
        rows = (
            client.table(settings.supabase_kv_table)
            .select("key", count="exact")
            .execute()
        )
        return {
            "status": "healthy",
            "keys_count": rows.count
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }

