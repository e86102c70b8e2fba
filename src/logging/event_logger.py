"""Structured event log for the publishing engine.

Provides the ``EventLogger`` class that appends structured entries as JSON
lines to local files (via ``aiofiles``) and keeps a lightweight in-memory
ring buffer for fast ``get_recent()`` queries.

Files written under ``log_dir``:
    - ``engine.log``  -- every entry at or above ``min_level``
    - ``errors.log``  -- ERROR and CRITICAL only

Global helpers:
    - ``init_event_logger()``  -- create and register a singleton
    - ``get_event_logger()``   -- retrieve the singleton (raises if not initialised)
"""

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import aiofiles

from src.logging.models import LogComponent, LogEntry, LogLevel
from src.scheduling.models import PostStatus, ScheduledPost, StatusUpdate, TickSummary
from src.utils import utc_now


class EventLogger:
    """Append-only structured event log.

    Parameters:
        log_dir: Directory for log files (created if missing).
        min_level: Minimum level written to disk and kept in memory.
        max_recent: Size of the in-memory ring buffer.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        min_level: LogLevel = LogLevel.INFO,
        max_recent: int = 1000,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.min_level = min_level

        # Current context (set per tick)
        self._tick_id: Optional[str] = None

        self._main_log = self.log_dir / "engine.log"
        self._error_log = self.log_dir / "errors.log"

        # In-memory ring buffer for quick access
        self._recent_logs: List[LogEntry] = []
        self._max_recent = max_recent

        # Custom handlers registered via add_handler()
        self._handlers: List[Callable[[LogEntry], None]] = []

    # ------------------------------------------------------------------
    # Context management
    # ------------------------------------------------------------------

    def set_tick(self, tick_id: Optional[str]) -> None:
        """Set the tick id attached to subsequent entries."""
        self._tick_id = tick_id

    def add_handler(self, handler: Callable[[LogEntry], None]) -> None:
        """Register a custom synchronous entry handler."""
        self._handlers.append(handler)

    # ------------------------------------------------------------------
    # Core log method
    # ------------------------------------------------------------------

    async def log(
        self,
        level: LogLevel,
        component: LogComponent,
        message: str,
        post_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
        duration_ms: Optional[int] = None,
    ) -> Optional[LogEntry]:
        """Record a structured event.

        Returns:
            The entry, or ``None`` if it was below ``min_level``.
        """
        if level.value < self.min_level.value:
            return None

        entry = LogEntry(
            timestamp=utc_now(),
            level=level,
            component=component,
            message=message,
            tick_id=self._tick_id,
            post_id=post_id,
            data=data or {},
            error_type=type(error).__name__ if error is not None else None,
            duration_ms=duration_ms,
        )

        self._recent_logs.append(entry)
        if len(self._recent_logs) > self._max_recent:
            self._recent_logs.pop(0)

        await self._write_to_file(entry)

        for handler in self._handlers:
            try:
                handler(entry)
            except Exception as exc:
                print(f"[EVENTS] Log handler failed: {exc}", file=sys.stderr)

        return entry

    async def info(self, component: LogComponent, message: str, **kwargs: Any) -> None:
        await self.log(LogLevel.INFO, component, message, **kwargs)

    async def warning(self, component: LogComponent, message: str, **kwargs: Any) -> None:
        await self.log(LogLevel.WARNING, component, message, **kwargs)

    async def error(self, component: LogComponent, message: str, **kwargs: Any) -> None:
        await self.log(LogLevel.ERROR, component, message, **kwargs)

    # ------------------------------------------------------------------
    # Engine events
    # ------------------------------------------------------------------

    async def record_outcome(self, post: ScheduledPost, update: StatusUpdate) -> None:
        """Record the terminal outcome of one post."""
        data: Dict[str, Any] = {"platform": post.platform, "status": update.status.value}
        if update.status is PostStatus.POSTED:
            data["platform_id"] = update.metadata.get("platform_id")
            if update.warning:
                data["warning"] = update.warning
            await self.log(
                LogLevel.WARNING if update.warning else LogLevel.INFO,
                LogComponent.DISPATCHER,
                f"Post published to {post.platform}",
                post_id=post.id,
                data=data,
            )
        else:
            data["error"] = update.error_message
            await self.log(
                LogLevel.ERROR,
                LogComponent.DISPATCHER,
                f"Post failed on {post.platform}",
                post_id=post.id,
                data=data,
            )

    async def record_tick(self, summary: TickSummary) -> None:
        """Record a tick summary."""
        await self.log(
            LogLevel.WARNING if summary.failed else LogLevel.INFO,
            LogComponent.SCHEDULER,
            f"Tick complete: {summary.posted} posted, {summary.failed} failed, "
            f"{summary.skipped} skipped",
            data=summary.to_dict(),
            duration_ms=summary.duration_ms,
        )

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    def get_recent(
        self,
        limit: int = 20,
        level: Optional[LogLevel] = None,
        component: Optional[LogComponent] = None,
        post_id: Optional[str] = None,
    ) -> List[LogEntry]:
        """Return recent entries from the in-memory ring buffer."""
        logs = self._recent_logs.copy()

        if level is not None:
            logs = [entry for entry in logs if entry.level == level]
        if component is not None:
            logs = [entry for entry in logs if entry.component == component]
        if post_id is not None:
            logs = [entry for entry in logs if entry.post_id == post_id]

        return logs[-limit:]

    # ------------------------------------------------------------------
    # File output
    # ------------------------------------------------------------------

    async def _write_to_file(self, entry: LogEntry) -> None:
        json_line = entry.to_json() + "\n"
        try:
            async with aiofiles.open(self._main_log, "a", encoding="utf-8") as f:
                await f.write(json_line)

            if entry.level.value >= LogLevel.ERROR.value:
                async with aiofiles.open(self._error_log, "a", encoding="utf-8") as f:
                    await f.write(json_line)
        except OSError as exc:
            # Last-resort fallback so a full disk never stops publishing.
            print(f"[EVENTS] Failed to write event log: {exc}", file=sys.stderr)


# ======================================================================
# GLOBAL EVENT LOGGER SINGLETON
# ======================================================================

_event_logger: Optional[EventLogger] = None


def init_event_logger(
    log_dir: str = "logs", min_level: LogLevel = LogLevel.INFO
) -> EventLogger:
    """Initialise and register the global ``EventLogger`` singleton."""
    global _event_logger
    _event_logger = EventLogger(log_dir=log_dir, min_level=min_level)
    return _event_logger


def get_event_logger() -> EventLogger:
    """Retrieve the global ``EventLogger`` singleton.

    Raises:
        RuntimeError: If ``init_event_logger()`` has not been called yet.
    """
    if _event_logger is None:
        raise RuntimeError("Event logger not initialized. Call init_event_logger() first.")
    return _event_logger
