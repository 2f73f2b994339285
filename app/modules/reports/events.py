import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.reports.models import ReportEvent, ReportEventType

logger = logging.getLogger(__name__)

def add_event(
    db: AsyncSession,
    report_id: UUID,
    event_type: ReportEventType,
    actor_id: Optional[UUID] = None,
    note: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
) -> ReportEvent:
    """
    Stage an event in the caller's unit of work.
    Used when the event must be committed atomically with the change it describes.
    """
    event = ReportEvent(
        report_id=report_id,
        type=event_type,
        note=note,
        data=data,
        created_by=actor_id,
    )
    db.add(event)
    return event

async def record_event_detached(
    db: AsyncSession,
    report_id: UUID,
    event_type: ReportEventType,
    actor_id: Optional[UUID] = None,
    note: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
) -> Optional[ReportEvent]:
    """
    Write an event after the primary change is already committed.
    Failures are logged and swallowed; the primary change stays in place.
    """
    try:
        event = add_event(db, report_id, event_type, actor_id=actor_id, note=note, data=data)
        await db.commit()
        return event
    except Exception as e:
        logger.error(f"[Events] Failed to record {event_type.value} for report {report_id}: {e}", exc_info=True)
        await db.rollback()
        return None

async def list_events(db: AsyncSession, report_id: UUID) -> List[ReportEvent]:
    result = await db.execute(
        select(ReportEvent)
        .where(ReportEvent.report_id == report_id)
        .order_by(ReportEvent.created_at.asc())
    )
    return result.scalars().all()
