"""SMTP mail sender.

Blocking by nature; the API never calls it inline. Jobs go through the
worker queue, which runs ``send_mail`` in a thread.

When SMTP_HOST is not configured the mail is logged and skipped.
"""
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


def is_configured() -> bool:
    return bool(settings.SMTP_HOST)


def send_mail(to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
    """Send one message. Returns True on success; SMTP failures are logged, never raised."""
    if not is_configured():
        logger.warning(f"[Mailer] SMTP not configured, skipping mail to {to}: {subject}")
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.MAIL_FROM
    msg["To"] = to
    msg.set_content(text)
    if html:
        msg.add_alternative(html, subtype="html")

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.MAIL_TIMEOUT_SECONDS) as server:
            if settings.SMTP_STARTTLS:
                server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"[Mailer] Failed to send to {to}: {e}")
        return False

    logger.info(f"[Mailer] Sent to {to}: {subject}")
    return True
