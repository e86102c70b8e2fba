"""
Entry point: run the scheduled publishing engine until interrupted.

Usage::

    python run.py            # tick every SCHEDULER_TICK_SECONDS until Ctrl+C
    python run.py --once     # run a single tick and exit
"""

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run")


def build_scheduler(settings, db):
    """Wire every engine component from *settings* around the store *db*."""
    from src.logging import init_event_logger
    from src.notifications import FailureNotifier, SmtpEmailTransport
    from src.platforms import build_registry
    from src.scheduling.dispatcher import PublishDispatcher
    from src.scheduling.fetcher import DuePostFetcher
    from src.scheduling.publishing_scheduler import PublishingScheduler
    from src.scheduling.recovery import StuckPostRecovery
    from src.vault import TokenVault

    vault = TokenVault(settings.encryption_key, require_key=settings.require_encryption)
    dispatcher = PublishDispatcher(
        build_registry(settings),
        vault,
        timeout_seconds=settings.adapter_timeout_seconds,
    )
    notifier = FailureNotifier(
        db,
        SmtpEmailTransport(settings.notifications),
        enabled=settings.notifications.enabled,
    )
    recovery = None
    if settings.recovery.enabled:
        recovery = StuckPostRecovery(db, settings.recovery.stuck_timeout_minutes)

    return PublishingScheduler(
        db=db,
        fetcher=DuePostFetcher(db, batch_size=settings.batch_size),
        dispatcher=dispatcher,
        notifier=notifier,
        recovery=recovery,
        event_logger=init_event_logger(log_dir=settings.log_dir),
        tick_interval_seconds=settings.tick_interval_seconds,
        recovery_interval_ticks=settings.recovery.interval_ticks,
    )


async def main(once: bool = False) -> None:
    from src.config import get_settings, validate_env
    from src.database import get_db

    validate_env()
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    db = await get_db()
    scheduler = build_scheduler(settings, db)

    if once:
        summary = await scheduler.run_tick()
        await scheduler.wait_for_notifications()
        logger.info("Single tick finished: %s", summary.to_dict())
        return

    try:
        await scheduler.start()
    finally:
        await scheduler.stop()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Scheduled publishing engine")
    parser.add_argument("--once", action="store_true", help="run one tick and exit")
    args = parser.parse_args()

    try:
        asyncio.run(main(once=args.once))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(0)
