"""
Background publishing scheduler that publishes posts at their scheduled times.

``PublishingScheduler`` runs as an asyncio background task.  Every tick it:

1. Fetches a bounded batch of due posts with their connected accounts.
2. Claims every post up front (``scheduled`` -> ``processing``), so a
   slow tick can never hand the same post to the next one.
3. Dispatches the claimed posts concurrently.
4. Writes each post's terminal status, remembers tier hints on the
   account, and schedules failure notifications in the background.

Ticks never overlap: if the previous tick is still running when the next
one is due, the new tick is skipped, not queued.  Every
``recovery_interval_ticks`` ticks the stuck-post recovery runs.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, List, Optional, Set, Tuple

from src.database import SupabaseDB
from src.scheduling.dispatcher import PublishDispatcher
from src.scheduling.fetcher import DuePostFetcher
from src.scheduling.models import (
    ConnectedAccount,
    PostStatus,
    ScheduledPost,
    StatusUpdate,
    TickSummary,
)
from src.scheduling.recovery import StuckPostRecovery
from src.utils import generate_id

if TYPE_CHECKING:
    from datetime import datetime

    from src.logging.event_logger import EventLogger
    from src.notifications.notifier import FailureNotifier

logger = logging.getLogger(__name__)


class PublishingScheduler:
    """Background task that publishes scheduled posts at their designated times.

    Args:
        db: Store client used for claims and status writes.
        fetcher: Loads each tick's batch.
        dispatcher: Publishes one post and returns its status update.
        notifier: Optional failure notifier.
        recovery: Optional stuck-post recovery.
        event_logger: Optional structured event log.
        tick_interval_seconds: Cadence of the loop (default: 60 seconds).
        recovery_interval_ticks: Run recovery every N ticks.
    """

    # How often to run stuck-post recovery (every N ticks)
    RECOVERY_INTERVAL_TICKS: int = 10

    def __init__(
        self,
        db: SupabaseDB,
        fetcher: DuePostFetcher,
        dispatcher: PublishDispatcher,
        notifier: Optional["FailureNotifier"] = None,
        recovery: Optional[StuckPostRecovery] = None,
        event_logger: Optional["EventLogger"] = None,
        tick_interval_seconds: float = 60,
        recovery_interval_ticks: Optional[int] = None,
    ) -> None:
        self.db = db
        self.fetcher = fetcher
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.recovery = recovery
        self.event_logger = event_logger
        self.tick_interval_seconds = tick_interval_seconds
        self.recovery_interval_ticks = (
            recovery_interval_ticks or self.RECOVERY_INTERVAL_TICKS
        )

        self._running: bool = False
        self._stop_event: Optional[asyncio.Event] = None
        self._tick_task: Optional["asyncio.Task[None]"] = None
        self._tick_count: int = 0
        self._skipped_ticks: int = 0

        # Track notification tasks to prevent garbage collection
        self._pending_notifications: Set["asyncio.Task[None]"] = set()

    # ================================================================
    # LIFECYCLE
    # ================================================================

    @property
    def tick_in_progress(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    async def start(self) -> None:
        """Run the scheduler loop until :meth:`stop` is called."""
        self._running = True
        self._stop_event = asyncio.Event()
        self._tick_count = 0
        logger.info(
            "[SCHEDULER] Publishing scheduler started (interval=%ss)",
            self.tick_interval_seconds,
        )

        try:
            while self._running:
                self._launch_tick()
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.tick_interval_seconds
                    )
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("[SCHEDULER] Publishing scheduler cancelled")
            raise
        finally:
            await self._drain()
            logger.info("[SCHEDULER] Publishing scheduler stopped")

    async def stop(self) -> None:
        """Ask the loop to exit.

        :meth:`start` returns once the running tick and any pending
        notifications have finished.
        """
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        logger.info("[SCHEDULER] Publishing scheduler stop requested")

    def _launch_tick(self) -> bool:
        """Start a tick in the background unless one is still running.

        Returns:
            ``True`` if a tick was launched, ``False`` if it was skipped.
        """
        if self.tick_in_progress:
            self._skipped_ticks += 1
            logger.warning(
                "[SCHEDULER] Previous tick still running, skipping this tick "
                "(%d skipped so far)",
                self._skipped_ticks,
            )
            return False

        self._tick_task = asyncio.create_task(self._tick_cycle())
        return True

    async def _tick_cycle(self) -> None:
        try:
            await self.run_tick()
            self._tick_count += 1

            # Run stuck-post recovery periodically
            if self.recovery and self._tick_count % self.recovery_interval_ticks == 0:
                await self._recover_stuck()
        except Exception:
            logger.exception("[SCHEDULER] Unexpected error in scheduler tick")

    async def _drain(self) -> None:
        if self._tick_task is not None:
            await asyncio.gather(self._tick_task, return_exceptions=True)
        await self.wait_for_notifications()

    async def wait_for_notifications(self) -> None:
        """Wait for all background failure notifications to finish."""
        if self._pending_notifications:
            await asyncio.gather(*self._pending_notifications, return_exceptions=True)
            self._pending_notifications.clear()

    # ================================================================
    # TICK
    # ================================================================

    async def run_tick(self, now: Optional["datetime"] = None) -> TickSummary:
        """Run one fetch-claim-dispatch-write cycle.

        Never raises: a fetch error is logged and returns an empty summary.
        """
        started = time.monotonic()
        summary = TickSummary()
        tick_id = generate_id()[:8]
        if self.event_logger:
            self.event_logger.set_tick(tick_id)

        try:
            batch = await self.fetcher.fetch_due_batch(now)
        except Exception as exc:
            logger.error("[SCHEDULER] Tick %s aborted, fetch failed: %s", tick_id, exc)
            return summary

        if not batch:
            return summary

        summary.total = len(batch)
        logger.info("[SCHEDULER] Tick %s: %d posts due for publishing", tick_id, len(batch))

        claimed = await self._claim_all(batch)
        summary.claimed = len(claimed)
        summary.skipped = summary.total - summary.claimed

        results = await asyncio.gather(
            *(self._process(post, account) for post, account in claimed),
            return_exceptions=True,
        )

        for (post, _), result in zip(claimed, results):
            if isinstance(result, BaseException):
                # _process handles its own errors; this is a last resort.
                logger.error("[SCHEDULER] Post %s processing crashed: %s", post.id, result)
                summary.failed += 1
                summary.errors.append(
                    {"post_id": post.id, "platform": post.platform, "error": str(result)}
                )
            elif result.status is PostStatus.POSTED:
                summary.posted += 1
            else:
                summary.failed += 1
                summary.errors.append({
                    "post_id": post.id,
                    "platform": post.platform,
                    "error": result.error_message or "",
                })

        summary.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "[SCHEDULER] Tick %s complete: %d posted, %d failed, %d skipped (%dms)",
            tick_id, summary.posted, summary.failed, summary.skipped, summary.duration_ms,
        )

        if self.event_logger:
            await self.event_logger.record_tick(summary)
        return summary

    async def _claim_all(
        self, batch: List[Tuple[ScheduledPost, ConnectedAccount]]
    ) -> List[Tuple[ScheduledPost, ConnectedAccount]]:
        """Claim every post before any dispatch starts."""
        claimed: List[Tuple[ScheduledPost, ConnectedAccount]] = []
        for post, account in batch:
            try:
                ok = await self.db.claim_post(post.id)
            except Exception as exc:
                logger.error("[SCHEDULER] Could not claim post %s: %s", post.id, exc)
                continue

            if not ok:
                logger.debug("[SCHEDULER] Post %s already claimed, skipping", post.id)
                continue

            post.status = PostStatus.PROCESSING
            claimed.append((post, account))
        return claimed

    async def _process(
        self, post: ScheduledPost, account: ConnectedAccount
    ) -> StatusUpdate:
        """Dispatch one claimed post and apply the result."""
        update = await self.dispatcher.dispatch(post, account)

        written = False
        try:
            written = await self.db.update_post_status(post.id, update.to_fields())
            if written:
                post.status = update.status
            else:
                logger.warning(
                    "[SCHEDULER] Post %s was no longer processing; status %s not written",
                    post.id, update.status.value,
                )
        except Exception as exc:
            # The post stays in processing and is picked up by recovery.
            logger.error(
                "[SCHEDULER] Failed to write status %s for post %s: %s",
                update.status.value, post.id, exc,
            )

        if update.account_update is not None:
            try:
                await self.db.update_account_metadata(
                    update.account_update.account_id, update.account_update.metadata
                )
            except Exception as exc:
                logger.warning(
                    "[SCHEDULER] Could not update account %s metadata: %s",
                    update.account_update.account_id, exc,
                )

        if self.event_logger:
            await self.event_logger.record_outcome(post, update)

        # Notify only once the failed status is stored
        if written and update.status is PostStatus.FAILED and self.notifier is not None:
            self._schedule_notification(post, update.error_message or "")

        return update

    def _schedule_notification(self, post: ScheduledPost, error_message: str) -> None:
        task = asyncio.create_task(self.notifier.notify_failure(post, error_message))
        self._pending_notifications.add(task)
        task.add_done_callback(self._pending_notifications.discard)

    # ================================================================
    # RECOVERY
    # ================================================================

    async def _recover_stuck(self) -> None:
        logger.debug("[SCHEDULER] Running stuck-post recovery check")
        try:
            await self.recovery.recover_stuck_posts()
        except Exception as exc:
            logger.error("[SCHEDULER] Stuck-post recovery failed: %s", exc)


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    "PublishingScheduler",
]
