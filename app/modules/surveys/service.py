import logging
import secrets
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import utcnow
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.modules.notifications.service import queue_mail, resolve_reporter_email
from app.modules.notifications.templates import NotificationEvent
from app.modules.reports.models import Report
from app.modules.surveys.models import ReportSurvey
from app.modules.surveys.schemas import MAX_COMMENT_LENGTH

logger = logging.getLogger(__name__)

def survey_url(token: str) -> str:
    return f"{settings.PUBLIC_APP_URL.rstrip('/')}/survey/{token}"

async def get_survey_for_report(db: AsyncSession, report_id: UUID) -> Optional[ReportSurvey]:
    result = await db.execute(
        select(ReportSurvey)
        .where(ReportSurvey.report_id == report_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()

async def dispatch_survey(
    db: AsyncSession,
    report_id: UUID,
    reporter_id: Optional[UUID],
    category: Optional[str] = None,
    address: Optional[str] = None,
) -> Optional[ReportSurvey]:
    """
    Called after a report reaches CLOSED.

    One survey per report for its whole life: the first closure creates it, a
    later closure re-sends the invitation while it is still unanswered, and a
    submitted survey is never issued again. Never raises.
    """
    try:
        email = await resolve_reporter_email(db, reporter_id)
        if not email:
            logger.warning(f"[Surveys] Report {report_id} has no reporter e-mail, survey skipped")
            return None

        survey = await get_survey_for_report(db, report_id)
        if survey is not None and survey.submitted_at is not None:
            logger.info(f"[Surveys] Survey for report {report_id} already answered, not re-issued")
            return None

        if survey is None:
            survey = ReportSurvey(
                report_id=report_id,
                token=secrets.token_urlsafe(32),
                email=email,
            )
            db.add(survey)
            await db.commit()
            logger.info(f"[Surveys] Created survey for report {report_id}")

        await queue_mail(
            survey.email,
            NotificationEvent.SURVEY_INVITATION,
            category=category or "",
            address=address or "the reported location",
            survey_url=survey_url(survey.token),
        )
        return survey
    except Exception as e:
        logger.error(f"[Surveys] Dispatch failed for report {report_id}: {e}", exc_info=True)
        await db.rollback()
        return None

async def get_by_token(db: AsyncSession, token: str) -> ReportSurvey:
    result = await db.execute(
        select(ReportSurvey)
        .where(ReportSurvey.token == token)
        .execution_options(populate_existing=True)
    )
    survey = result.scalars().first()
    if not survey:
        raise NotFoundError("Survey not found")
    return survey

async def get_survey(db: AsyncSession, token: str) -> Dict[str, Any]:
    survey = await get_by_token(db, token)
    report = await db.get(Report, survey.report_id)
    if not report:
        raise NotFoundError("Survey not found")
    return {
        "report": report,
        "submitted_at": survey.submitted_at,
        "rating": survey.rating,
        "comment": survey.comment,
    }

async def submit_survey(db: AsyncSession, token: str, rating: int, comment: Optional[str] = None) -> Dict[str, Any]:
    survey = await get_by_token(db, token)
    if survey.submitted_at is not None:
        raise ConflictError("Survey already submitted")

    if isinstance(rating, bool) or not isinstance(rating, int) or not (1 <= rating <= 5):
        raise ValidationError("rating must be an integer between 1 and 5")
    if comment is not None:
        comment = comment.strip() or None
    if comment and len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"comment must be at most {MAX_COMMENT_LENGTH} characters")

    # Conditional update: of two concurrent submissions only one matches submitted_at IS NULL
    now = utcnow()
    result = await db.execute(
        update(ReportSurvey)
        .where(ReportSurvey.id == survey.id, ReportSurvey.submitted_at.is_(None))
        .values(rating=rating, comment=comment, submitted_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount != 1:
        raise ConflictError("Survey already submitted")

    logger.info(f"[Surveys] Survey {survey.id} submitted (rating {rating})")
    return {"submitted_at": now}
