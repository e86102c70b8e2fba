"""
Unified async database client for the publishing engine.

ALL database operations go through the SupabaseDB class defined here.
No direct Supabase calls should appear anywhere else in the codebase.

The engine runs with the service-role key (it must read and update posts
belonging to every user), so the client is created once by the entry point
and injected into the components that need it.

Usage::

    from src.database import SupabaseDB

    db = await SupabaseDB.create()
    rows = await db.get_due_posts(utc_now(), limit=20)

Tables used:
    - ``scheduled_posts``: queued posts and their status
    - ``connected_accounts``: per-user platform credentials (encrypted)
    - ``email_notification_settings``: per-user failure e-mail preferences
    - ``profiles``: account e-mail used as notification fallback
"""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from supabase import AsyncClient, create_async_client

from src.exceptions import DatabaseError, ValidationError
from src.utils import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def validate_not_empty(value: Any, name: str) -> None:
    """Validate that *value* is not ``None`` or an empty string.

    Args:
        value: The value to check.
        name: Human-readable field name used in error messages.

    Raises:
        ValidationError: If *value* is ``None`` or a blank string.
    """
    if value is None:
        raise ValidationError(f"{name} cannot be None")
    if isinstance(value, str) and not value.strip():
        raise ValidationError(f"{name} cannot be empty string")


def validate_positive(value: Union[int, float], name: str) -> None:
    """Validate that *value* is strictly positive (> 0).

    Args:
        value: The numeric value to check.
        name: Human-readable field name used in error messages.

    Raises:
        ValidationError: If *value* is ``None`` or not positive.
    """
    if value is None:
        raise ValidationError(f"{name} cannot be None")
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}")


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class SupabaseConfig:
    """Supabase configuration loaded from environment variables.

    Attributes:
        url: The Supabase project URL (``SUPABASE_URL``).
        key: The service-role key for full server-side access
            (``SUPABASE_SERVICE_ROLE_KEY``, or legacy
            ``SUPABASE_SERVICE_KEY``).
    """

    url: str
    key: str  # service_role key: bypasses RLS, engine use only

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        """Create a config instance from environment variables.

        Raises:
            ValueError: If the URL or key is missing or empty.
        """
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or os.environ.get(
            "SUPABASE_SERVICE_KEY"
        )

        if not url or not key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set"
            )

        return cls(url=url, key=key)


# =============================================================================
# SUPABASE DATABASE CLIENT
# =============================================================================


class SupabaseDB:
    """Unified **async** database client for all engine operations.

    **Important:** Use the :meth:`create` factory method instead of
    ``__init__`` directly -- the underlying async client requires an
    ``await`` during initialisation.
    """

    def __init__(self, client: AsyncClient) -> None:
        """Private constructor.  Use :meth:`create` factory method."""
        self.client = client

    @classmethod
    async def create(
        cls, config: Optional[SupabaseConfig] = None
    ) -> "SupabaseDB":
        """Factory method to create an async :class:`SupabaseDB` instance.

        Args:
            config: Optional configuration.  When ``None``,
                :meth:`SupabaseConfig.from_env` is used.
        """
        config = config or SupabaseConfig.from_env()
        client = await create_async_client(config.url, config.key)
        return cls(client)

    # -----------------------------------------------------------------
    # SCHEDULED POSTS
    # -----------------------------------------------------------------

    async def get_due_posts(
        self, now: datetime, limit: int = 20, offset: int = 0
    ) -> List[Dict[str, Any]]:
        """Get posts that are due for publishing.

        Returns posts with status ``"scheduled"`` whose ``scheduled_at`` is
        at or before *now*, oldest first.  *limit* and *offset* select one
        page of that ordering.

        Raises:
            DatabaseError: If the query fails.
        """
        validate_positive(limit, "limit")

        try:
            result = await (
                self.client.table("scheduled_posts")
                .select("*")
                .eq("status", "scheduled")
                .lte("scheduled_at", now.isoformat())
                .order("scheduled_at", desc=False)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except Exception as exc:
            raise DatabaseError(f"Failed to fetch due posts: {exc}") from exc
        return result.data or []

    async def claim_post(self, post_id: str) -> bool:
        """Claim a scheduled post for publishing.

        Transitions the post from ``"scheduled"`` to ``"processing"``.
        Only succeeds if the post currently has status ``"scheduled"``,
        preventing double-publishing.

        Returns:
            ``True`` if the claim succeeded, ``False`` if the post was
            already claimed or in a different status.
        """
        validate_not_empty(post_id, "post_id")

        result = await (
            self.client.table("scheduled_posts")
            .update({
                "status": "processing",
                "updated_at": utc_now().isoformat(),
            })
            .eq("id", post_id)
            .eq("status", "scheduled")
            .execute()
        )
        # If data is returned, the update matched and the claim succeeded
        return bool(result.data)

    async def update_post_status(
        self, post_id: str, fields: Dict[str, Any]
    ) -> bool:
        """Write a terminal status for a post that is ``"processing"``.

        The update is conditional on the current status so a post can only
        move forward (``processing`` -> ``posted``/``failed``).

        Args:
            post_id: UUID of the scheduled post.
            fields: Column values to write (must include ``status``).

        Returns:
            ``True`` if a row was updated.

        Raises:
            ValidationError: If *fields* is empty or lacks ``status``.
        """
        validate_not_empty(post_id, "post_id")
        if not fields or "status" not in fields:
            raise ValidationError("status update must include 'status'")

        payload = dict(fields)
        payload["updated_at"] = utc_now().isoformat()

        result = await (
            self.client.table("scheduled_posts")
            .update(payload)
            .eq("id", post_id)
            .eq("status", "processing")
            .execute()
        )
        return bool(result.data)

    async def get_stuck_posts(
        self, older_than: datetime, limit: int = 100
    ) -> List[Dict[str, Any]]:
        """Get posts left in ``"processing"`` since before *older_than*."""
        validate_positive(limit, "limit")

        result = await (
            self.client.table("scheduled_posts")
            .select("*")
            .eq("status", "processing")
            .lte("updated_at", older_than.isoformat())
            .order("updated_at", desc=False)
            .limit(limit)
            .execute()
        )
        return result.data or []

    # -----------------------------------------------------------------
    # CONNECTED ACCOUNTS
    # -----------------------------------------------------------------

    async def get_connected_accounts(
        self,
        owner_ids: Sequence[str],
        platforms: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Get connected accounts for a set of owners in one query.

        Args:
            owner_ids: Owners to look up.  An empty sequence returns ``[]``
                without a round trip.
            platforms: Optional platform filter.

        Raises:
            DatabaseError: If the query fails.
        """
        if not owner_ids:
            return []

        query = (
            self.client.table("connected_accounts")
            .select("*")
            .in_("user_id", list(owner_ids))
        )
        if platforms:
            query = query.in_("platform", list(platforms))

        try:
            result = await query.execute()
        except Exception as exc:
            raise DatabaseError(f"Failed to fetch connected accounts: {exc}") from exc
        return result.data or []

    async def update_account_metadata(
        self, account_id: str, metadata: Dict[str, Any]
    ) -> None:
        """Merge *metadata* into a connected account's ``metadata`` column.

        Args:
            account_id: UUID of the connected account.
            metadata: Keys to add or overwrite.
        """
        validate_not_empty(account_id, "account_id")
        if not metadata:
            return

        result = await (
            self.client.table("connected_accounts")
            .select("metadata")
            .eq("id", account_id)
            .execute()
        )
        if not result.data:
            raise DatabaseError(f"Connected account {account_id} not found")

        merged = dict(result.data[0].get("metadata") or {})
        merged.update(metadata)

        await (
            self.client.table("connected_accounts")
            .update({"metadata": merged, "updated_at": utc_now().isoformat()})
            .eq("id", account_id)
            .execute()
        )

    # -----------------------------------------------------------------
    # NOTIFICATION PREFERENCES
    # -----------------------------------------------------------------

    async def get_notification_settings(
        self, owner_id: str
    ) -> Optional[Dict[str, Any]]:
        """Get an owner's e-mail notification preferences, or ``None``."""
        validate_not_empty(owner_id, "owner_id")

        result = await (
            self.client.table("email_notification_settings")
            .select("*")
            .eq("user_id", owner_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    async def get_owner_email(self, owner_id: str) -> Optional[str]:
        """Get the account e-mail address for *owner_id*, or ``None``."""
        validate_not_empty(owner_id, "owner_id")

        result = await (
            self.client.table("profiles")
            .select("email")
            .eq("id", owner_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return result.data[0].get("email") or None


# =============================================================================
# GLOBAL DATABASE INSTANCE (Singleton)
# =============================================================================

# One async connection for the entire process.
_db_instance: Optional[SupabaseDB] = None
_db_lock: Optional[asyncio.Lock] = None

# Thread lock for safe initialisation of the async lock itself.
_init_lock = threading.Lock()


async def get_db() -> SupabaseDB:
    """Get the process-wide async database instance.

    Only the entry point should call this; engine components receive the
    instance through their constructors.
    """
    global _db_instance, _db_lock

    # Thread-safe lazy initialisation of the async lock.
    if _db_lock is None:
        with _init_lock:
            # Double-check after acquiring thread lock.
            if _db_lock is None:
                _db_lock = asyncio.Lock()

    if _db_instance is None:
        async with _db_lock:
            # Double-check after acquiring async lock.
            if _db_instance is None:
                _db_instance = await SupabaseDB.create()

    return _db_instance
