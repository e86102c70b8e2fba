"""Failure notifications for posts that could not be published."""

from src.notifications.email_transport import SmtpEmailTransport, render_failure_email
from src.notifications.notifier import FailureNotice, FailureNotifier, NotificationTransport

__all__ = [
    "FailureNotice",
    "FailureNotifier",
    "NotificationTransport",
    "SmtpEmailTransport",
    "render_failure_email",
]
