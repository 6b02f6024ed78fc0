"""
Base repository class for database access.

Provides a common abstraction layer for all Supabase repositories,
encapsulating client access and shared helpers for data operations.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from postgrest.exceptions import APIError
from supabase import Client

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class BaseRepository:
    """
    Base class for all Supabase repositories.

    Provides common functionality for database operations:
    - Supabase client access via self._db
    - Row helpers shared by module repositories

    Subclasses implement domain-specific data access methods
    and handle dict-to-Pydantic model mapping internally.

    Example:
        class BillingRepository(BaseRepository):
            def get_plan(self, plan_id: str) -> Optional[Plan]:
                row = self._first(
                    self._db.table("plans").select("*").eq("id", plan_id).execute()
                )
                return self._map_to_plan(row) if row else None
    """

    def __init__(self, db: Client) -> None:
        """
        Initialize the repository with a Supabase client.

        Args:
            db: Supabase client instance for database operations.
        """
        self._db = db

    @staticmethod
    def _first(result: Any) -> Optional[dict[str, Any]]:
        """Return the first row of a query result, or None when empty."""
        if not result.data:
            return None
        return result.data[0]

    @staticmethod
    def _now() -> str:
        """Current UTC timestamp in ISO format for timestamp columns."""
        return datetime.now(timezone.utc).isoformat()


def is_unique_violation(error: APIError) -> bool:
    """Check whether a PostgREST error is a unique constraint violation."""
    return getattr(error, "code", None) == UNIQUE_VIOLATION


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so `ilike` matches the value literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
