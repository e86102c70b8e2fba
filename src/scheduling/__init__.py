"""Scheduling subsystem: due-post fetching, dispatch, the scheduler loop and recovery.

Only the data models are re-exported here; the components are imported
from their modules (``src.scheduling.dispatcher`` and friends) because
they depend on ``src.platforms``, which itself depends on these models.
"""

from src.scheduling.models import (
    AccountUpdate,
    ConnectedAccount,
    Platform,
    PostContent,
    PostStatus,
    ScheduledPost,
    StatusUpdate,
    TickSummary,
)

__all__ = [
    "AccountUpdate",
    "ConnectedAccount",
    "Platform",
    "PostContent",
    "PostStatus",
    "ScheduledPost",
    "StatusUpdate",
    "TickSummary",
]
