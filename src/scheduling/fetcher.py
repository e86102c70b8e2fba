"""
Due-post fetcher: one bounded batch of due posts joined to their accounts.

Two store round trips per page of due posts:

1. due posts (``status = scheduled AND scheduled_at <= now``), oldest
   first, one batch-sized page at a time;
2. connected accounts for every owner on the page, in one query.

The join happens in memory on ``(owner_id, platform)``.  A post whose
owner has no connected account for its platform is left ``scheduled``
and picked up again once the account is connected.  Further pages are
read only while the batch is short of publishable posts.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from src.database import SupabaseDB
from src.scheduling.models import (
    ConnectedAccount,
    PostContent,
    PostStatus,
    ScheduledPost,
    normalize_platform,
)
from src.utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20


# =============================================================================
# ROW CONVERSION
# =============================================================================


def row_to_post(row: Dict[str, Any]) -> ScheduledPost:
    """Convert a ``scheduled_posts`` row to a :class:`ScheduledPost`.

    Raises:
        KeyError: If a required column is missing.
        ValueError: If a timestamp or status is malformed.
    """
    return ScheduledPost(
        id=str(row["id"]),
        owner_id=str(row["user_id"]),
        platform=normalize_platform(row.get("platform")),
        content=PostContent.from_json(row.get("content")),
        scheduled_at=parse_timestamp(row["scheduled_at"]),
        status=PostStatus(row.get("status", PostStatus.SCHEDULED.value)),
        posted_at=parse_timestamp(row.get("posted_at")),
        error_message=row.get("error_message"),
        metadata=dict(row.get("metadata") or {}),
        updated_at=parse_timestamp(row.get("updated_at")),
    )


def row_to_account(row: Dict[str, Any]) -> ConnectedAccount:
    """Convert a ``connected_accounts`` row to a :class:`ConnectedAccount`.

    Token columns are kept exactly as stored (encrypted envelopes).
    """
    return ConnectedAccount(
        id=str(row["id"]),
        owner_id=str(row["user_id"]),
        platform=normalize_platform(row.get("platform")),
        access_token=row.get("access_token") or "",
        refresh_token=row.get("refresh_token"),
        token_expires_at=parse_timestamp(row.get("token_expires_at")),
        platform_user_id=row.get("platform_user_id"),
        metadata=dict(row.get("metadata") or {}),
    )


# =============================================================================
# FETCHER
# =============================================================================


class DuePostFetcher:
    """Load the next batch of due posts with their connected accounts.

    Args:
        db: Store client.
        batch_size: Default maximum number of posts per batch.
    """

    def __init__(self, db: SupabaseDB, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self.db = db
        self.batch_size = batch_size

    async def fetch_due_batch(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[ScheduledPost, ConnectedAccount]]:
        """Return due posts paired with their accounts, oldest first.

        Rows that cannot be published (malformed, or no connected account)
        stay ``scheduled`` and keep their place at the front of the due
        ordering.  Pages are therefore read until *limit* publishable posts
        are found or the due rows run out, so such rows never take up the
        whole batch.

        Raises:
            DatabaseError: If any query fails; the tick is aborted.
        """
        now = now or utc_now()
        limit = limit or self.batch_size

        batch: List[Tuple[ScheduledPost, ConnectedAccount]] = []
        offset = 0
        while len(batch) < limit:
            rows = await self.db.get_due_posts(now, limit, offset=offset)
            if not rows:
                break
            batch.extend(await self._pair_with_accounts(rows))
            if len(rows) < limit:
                break
            offset += len(rows)

        batch = batch[:limit]
        logger.info("[FETCHER] %d due posts with connected accounts", len(batch))
        return batch

    async def _pair_with_accounts(
        self, rows: List[Dict[str, Any]]
    ) -> List[Tuple[ScheduledPost, ConnectedAccount]]:
        """Join one page of due rows to their accounts with a single query."""
        posts: List[ScheduledPost] = []
        for row in rows:
            try:
                posts.append(row_to_post(row))
            except (KeyError, ValueError, TypeError) as exc:
                logger.error(
                    "[FETCHER] Skipping malformed post row %s: %s", row.get("id"), exc
                )
        if not posts:
            return []

        owner_ids = sorted({post.owner_id for post in posts})
        platforms = sorted(
            {post.platform for post in posts}
            | {row.get("platform") for row in rows if row.get("platform")}
        )
        account_rows = await self.db.get_connected_accounts(owner_ids, platforms)

        accounts: Dict[Tuple[str, str], ConnectedAccount] = {}
        for account_row in account_rows:
            try:
                account = row_to_account(account_row)
            except (KeyError, ValueError, TypeError) as exc:
                logger.error(
                    "[FETCHER] Skipping malformed account row %s: %s",
                    account_row.get("id"), exc,
                )
                continue
            accounts[(account.owner_id, account.platform)] = account

        paired: List[Tuple[ScheduledPost, ConnectedAccount]] = []
        for post in posts:
            account = accounts.get((post.owner_id, post.platform))
            if account is None:
                logger.debug(
                    "[FETCHER] No connected %s account for post %s, leaving scheduled",
                    post.platform, post.id,
                )
                continue
            paired.append((post, account))
        return paired


__all__ = ["DuePostFetcher", "row_to_post", "row_to_account", "DEFAULT_BATCH_SIZE"]
