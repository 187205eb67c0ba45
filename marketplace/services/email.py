"""Email notifications.

Supports two backends:
- SMTP via aiosmtplib (production)
- Log-only (development / testing), which logs the email instead of sending

Set EMAIL_BACKEND=smtp and configure SMTP_* settings for production.

Lifecycle and account notifications go through ``notify``, which never raises:
a failed delivery is logged and the caller's state change stands.
"""

import logging
from typing import Protocol

from marketplace.config import settings

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, body: str) -> None: ...


class LogEmailSender:
    """Development sender. Logs email content instead of sending."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("EMAIL to=%s subject=%s\n%s", to, subject, body)


class SmtpEmailSender:
    """Production sender. Sends via SMTP."""

    async def send(self, to: str, subject: str, body: str) -> None:
        import aiosmtplib
        from email.message import EmailMessage

        msg = EmailMessage()
        msg["From"] = settings.smtp_from_address
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)

        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
            use_tls=settings.smtp_use_tls,
        )


def get_email_sender() -> EmailSender:
    if settings.email_backend == "smtp":
        return SmtpEmailSender()
    return LogEmailSender()


async def notify(message: str, recipient: str | None, subject: str) -> None:
    """Best-effort delivery of a notification email."""
    if not recipient:
        logger.warning("Notification %r dropped: no recipient address", subject)
        return
    try:
        await get_email_sender().send(to=recipient, subject=subject, body=message)
    except Exception:
        logger.exception("Failed to send %r notification to %s", subject, recipient)
