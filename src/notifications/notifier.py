"""
Failure notifier: best-effort e-mail to a post's owner when it fails.

``FailureNotifier.notify_failure`` never raises.  Lookup errors, missing
preferences and transport errors are logged and swallowed, so a failure
notification can never change a post's outcome or stop the batch.

Destination resolution:
    1. ``email_notification_settings`` row for the owner; absent or
       ``failed_posts_enabled`` false -> no e-mail.
    2. The settings row's ``email``, else the owner's profile e-mail.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from src.database import SupabaseDB
from src.scheduling.models import ScheduledPost
from src.utils import snippet

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200


@dataclass
class FailureNotice:
    """Everything a transport needs to tell an owner about a failed post."""

    to_email: str
    post_id: str
    platform: str
    content_snippet: str
    scheduled_at: Optional[datetime]
    error_message: str


class NotificationTransport(ABC):
    """Delivers a :class:`FailureNotice`.

    Raises:
        NotificationError: If delivery fails.
    """

    @abstractmethod
    async def send(self, notice: FailureNotice) -> None:
        ...


class FailureNotifier:
    """Notify owners about failed posts.

    Args:
        db: Store client (notification settings and profile lookups).
        transport: Delivery channel, normally
            :class:`~src.notifications.email_transport.SmtpEmailTransport`.
        enabled: Global switch; when ``False`` nothing is looked up or sent.
    """

    def __init__(
        self,
        db: SupabaseDB,
        transport: NotificationTransport,
        enabled: bool = True,
    ) -> None:
        self.db = db
        self.transport = transport
        self.enabled = enabled

    async def notify_failure(self, post: ScheduledPost, error_message: str) -> None:
        """Send a failure notice for *post*, if the owner opted in."""
        if not self.enabled:
            return

        try:
            to_email = await self._resolve_destination(post.owner_id)
            if not to_email:
                return

            notice = FailureNotice(
                to_email=to_email,
                post_id=post.id,
                platform=post.platform,
                content_snippet=snippet(post.content.text, SNIPPET_LENGTH),
                scheduled_at=post.scheduled_at,
                error_message=error_message,
            )
            await self.transport.send(notice)
            logger.info(
                "[NOTIFY] Failure notice sent for post %s (%s)", post.id, post.platform
            )
        except Exception as exc:
            logger.error(
                "[NOTIFY] Could not send failure notice for post %s: %s", post.id, exc
            )

    async def _resolve_destination(self, owner_id: str) -> Optional[str]:
        settings = await self.db.get_notification_settings(owner_id)
        if not settings or not settings.get("failed_posts_enabled"):
            logger.debug("[NOTIFY] Owner %s has failure e-mails disabled", owner_id)
            return None

        email = settings.get("email") or await self.db.get_owner_email(owner_id)
        if not email:
            logger.info("[NOTIFY] No e-mail address for owner %s, skipping", owner_id)
            return None
        return email


__all__ = ["FailureNotice", "NotificationTransport", "FailureNotifier"]
