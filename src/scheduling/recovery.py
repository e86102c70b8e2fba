"""
Stuck-post recovery.

A post whose process died between the claim and the status write stays in
``processing`` forever.  :class:`StuckPostRecovery` finds posts that have
been ``processing`` for longer than the timeout and marks them ``FAILED``.
They are never moved back to ``scheduled``: the platform may already have
accepted the post, and re-publishing would duplicate it.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from src.database import SupabaseDB
from src.scheduling.models import StatusUpdate
from src.utils import utc_now

logger = logging.getLogger(__name__)

STUCK_TIMEOUT_MINUTES = 10


class StuckPostRecovery:
    """Fail posts left in ``processing`` past a timeout.

    Args:
        db: Store client.
        stuck_timeout_minutes: Age of the last status write after which a
            ``processing`` post is considered stuck.
    """

    def __init__(
        self, db: SupabaseDB, stuck_timeout_minutes: int = STUCK_TIMEOUT_MINUTES
    ) -> None:
        self.db = db
        self.stuck_timeout_minutes = stuck_timeout_minutes

    @property
    def error_message(self) -> str:
        return (
            "Publishing interrupted: post was stuck in processing for more "
            f"than {self.stuck_timeout_minutes} minutes"
        )

    async def recover_stuck_posts(self, now: Optional[datetime] = None) -> int:
        """Mark stuck posts as ``FAILED``.

        Returns:
            Number of posts recovered.
        """
        cutoff = (now or utc_now()) - timedelta(minutes=self.stuck_timeout_minutes)
        rows = await self.db.get_stuck_posts(cutoff)
        if not rows:
            return 0

        recovered = 0
        for row in rows:
            post_id = row["id"]
            update = StatusUpdate.failed(post_id, self.error_message)
            if await self.db.update_post_status(post_id, update.to_fields()):
                recovered += 1
                logger.warning(
                    "[RECOVERY] Post %s was stuck in processing for >%d min, marked failed",
                    post_id, self.stuck_timeout_minutes,
                )

        logger.info(
            "[RECOVERY] Recovery complete: %d stuck posts marked as failed", recovered
        )
        return recovered


__all__ = ["StuckPostRecovery", "STUCK_TIMEOUT_MINUTES"]
