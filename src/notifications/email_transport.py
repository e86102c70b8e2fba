"""
SMTP transport for failure notices (``aiosmtplib``).

When SMTP credentials are not configured the transport logs and skips, so
a development deployment runs without a mail server.
"""

import html
import logging
from email.message import EmailMessage
from typing import Tuple

import aiosmtplib

from src.config import NotificationConfig
from src.exceptions import NotificationError
from src.notifications.notifier import FailureNotice, NotificationTransport

logger = logging.getLogger(__name__)


def render_failure_email(notice: FailureNotice, app_url: str) -> Tuple[str, str, str]:
    """Build ``(subject, plain_text, html_body)`` for a failure notice."""
    platform = notice.platform.capitalize()
    scheduled = (
        notice.scheduled_at.strftime("%Y-%m-%d %H:%M UTC") if notice.scheduled_at else "-"
    )
    app_url = app_url.rstrip("/")
    subject = f"Post Failed to Publish - {platform}"

    plain_text = (
        f"We attempted to publish your scheduled post to {platform}, "
        f"but it failed with the following error:\n\n"
        f"Error: {notice.error_message}\n\n"
        f"Post content:\n{notice.content_snippet}\n\n"
        f"Scheduled for: {scheduled}\n\n"
        f"If the error mentions an expired token, reconnect your {platform} "
        f"account in Settings.\n\n"
        f"View schedule: {app_url}/schedule\n"
        f"Manage notification preferences: {app_url}/settings\n"
    )

    html_body = (
        "<html><body>"
        "<h2>Post Failed to Publish</h2>"
        f"<p>We attempted to publish your scheduled post to <strong>{html.escape(platform)}"
        "</strong>, but it failed with the following error:</p>"
        f"<p><strong>Error:</strong> {html.escape(notice.error_message)}</p>"
        f"<p><strong>Post content:</strong><br>{html.escape(notice.content_snippet)}</p>"
        f"<p><small><strong>Scheduled for:</strong> {scheduled}</small></p>"
        f'<p><a href="{html.escape(app_url)}/schedule">View Schedule &amp; Retry</a></p>'
        "<p><small>You received this email because you have email notifications "
        f'enabled for failed posts. <a href="{html.escape(app_url)}/settings">'
        "Manage notification preferences</a></small></p>"
        "</body></html>"
    )
    return subject, plain_text, html_body


class SmtpEmailTransport(NotificationTransport):
    """Send failure notices over SMTP.

    Args:
        config: Notification settings (SMTP host, port, credentials,
            sender and app URL).
    """

    def __init__(self, config: NotificationConfig) -> None:
        self.config = config

    async def send(self, notice: FailureNotice) -> None:
        if not self.config.smtp_configured:
            logger.info(
                "[NOTIFY] SMTP not configured, skipping e-mail for post %s",
                notice.post_id,
            )
            return

        subject, plain_text, html_body = render_failure_email(notice, self.config.app_url)

        msg = EmailMessage()
        msg["From"] = self.config.smtp_from or self.config.smtp_user
        msg["To"] = notice.to_email
        msg["Subject"] = subject
        msg.set_content(plain_text)
        msg.add_alternative(html_body, subtype="html")

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.config.smtp_host,
                port=self.config.smtp_port,
                username=self.config.smtp_user or None,
                password=self.config.smtp_password or None,
                start_tls=self.config.smtp_port in (587, 25),
                use_tls=self.config.smtp_port == 465,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"SMTP delivery failed: {exc}") from exc


__all__ = ["SmtpEmailTransport", "render_failure_email"]
