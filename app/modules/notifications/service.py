"""
Notification gateway.

Maps a status transition to a reporter notification, filters it through the
allow-list in the configuration store and hands the mail to the worker queue.
Nothing here raises: a notification that cannot be sent is logged and dropped.
"""
import logging
from types import MappingProxyType
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.admin.service import get_system_config
from app.modules.auth.models import User
from app.modules.notifications.templates import NotificationEvent, render
from app.modules.reports.models import ReportStatus
from app.modules.worker.runner import worker

logger = logging.getLogger(__name__)

STATUS_EVENTS = MappingProxyType({
    ReportStatus.SCHEDULED: NotificationEvent.STATUS_SCHEDULED,
    ReportStatus.RESOLVED: NotificationEvent.STATUS_RESOLVED,
    ReportStatus.CLOSED: NotificationEvent.STATUS_CLOSED,
    ReportStatus.REOPENED: NotificationEvent.STATUS_REOPENED,
})

async def resolve_reporter_email(db: AsyncSession, user_id: Optional[UUID]) -> Optional[str]:
    if user_id is None:
        return None
    user = await db.get(User, user_id)
    if user is None or not user.email:
        return None
    return user.email

async def queue_mail(to: str, event: NotificationEvent, **context) -> None:
    subject, text = render(event, **context)
    await worker.enqueue_job("send_mail", to=to, subject=subject, text=text)

async def notify_status_change(
    db: AsyncSession,
    report_id: UUID,
    reporter_id: Optional[UUID],
    target: ReportStatus,
    category: Optional[str] = None,
    address: Optional[str] = None,
    note: Optional[str] = None,
) -> bool:
    """Returns True when a mail was queued."""
    event = STATUS_EVENTS.get(target)
    if event is None:
        return False

    try:
        config = await get_system_config(db)
        if event.value not in config.get("notification_events", []):
            logger.debug(f"[Notifications] {event.value} disabled, skipping report {report_id}")
            return False

        email = await resolve_reporter_email(db, reporter_id)
        if not email:
            logger.info(f"[Notifications] No reporter e-mail for report {report_id}, skipping {event.value}")
            return False

        await queue_mail(
            email,
            event,
            category=category or "",
            address=address or "the reported location",
            report_id=report_id,
            note=note,
        )
        return True
    except Exception as e:
        logger.error(f"[Notifications] Failed to dispatch {event.value} for report {report_id}: {e}", exc_info=True)
        return False
