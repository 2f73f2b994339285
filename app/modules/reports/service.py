import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy import select, func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.db import as_utc, utcnow
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.storage import storage
from app.modules.admin.service import get_system_config
from app.modules.auth.models import User, UserRole, AuthMode
from app.modules.auth.schemas import Principal
from app.modules.notifications.service import notify_status_change
from app.modules.reports import priority as priority_calc
from app.modules.reports.events import add_event, list_events as _list_events, record_event_detached
from app.modules.reports.models import (
    Report, ReportStatusEntry, ReportEvidence, ReportCategory, ReportStatus,
    PriorityLevel, ReportEventType, EvidenceType,
)
from app.modules.reports.schemas import ReportCreate
from app.modules.reports.workflow import apply_transition, clean_note, start_history, validate_transition
from app.modules.surveys.service import dispatch_survey

logger = logging.getLogger(__name__)

DEFAULT_MAP_LIMIT = 1000

def normalize_email(email: str) -> str:
    return email.strip().lower()

def _require_staff(actor: Optional[Principal]):
    if actor is None or not actor.is_staff:
        raise ForbiddenError("Staff only")

def _iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value is not None else None

async def _commit_or_conflict(db: AsyncSession):
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        raise ConflictError("Report was modified by someone else, reload and try again")

async def get_report_or_404(db: AsyncSession, report_id: UUID) -> Report:
    report = await db.get(Report, report_id)
    if not report:
        raise NotFoundError("Report not found")
    return report

async def _reload(db: AsyncSession, report_id: UUID) -> Report:
    # populate_existing: the identity map may hold state from before a rolled back side effect
    result = await db.execute(
        select(Report)
        .where(Report.id == report_id)
        .execution_options(populate_existing=True)
    )
    report = result.scalars().first()
    if not report:
        raise NotFoundError("Report not found")
    return report

# --- Access ---

async def _ensure_reporter_email(db: AsyncSession, report: Report, email: str):
    reporter = await db.get(User, report.created_by) if report.created_by else None
    if reporter is None or reporter.email != normalize_email(email):
        raise ForbiddenError("Access denied")

def _ensure_owner_or_staff(report: Report, principal: Optional[Principal]):
    if principal is None:
        raise ForbiddenError("Access denied")
    if not (principal.is_staff or report.created_by == principal.id):
        raise ForbiddenError("Access denied")

async def _ensure_can_view(db: AsyncSession, report: Report, principal: Optional[Principal], email: Optional[str]):
    """Staff and the owner see everything; anonymous callers prove ownership with the reporter e-mail."""
    if principal is not None:
        _ensure_owner_or_staff(report, principal)
        return
    if not email or not email.strip():
        raise ValidationError("email is required")
    await _ensure_reporter_email(db, report, email)

async def get_report(
    db: AsyncSession,
    report_id: UUID,
    principal: Optional[Principal],
    email: Optional[str] = None
) -> Report:
    report = await get_report_or_404(db, report_id)
    await _ensure_can_view(db, report, principal, email)
    return report

async def lookup_report(db: AsyncSession, report_id: UUID, email: str) -> Report:
    report = await get_report_or_404(db, report_id)
    await _ensure_can_view(db, report, None, email)
    return report

async def list_my_reports(db: AsyncSession, principal: Principal) -> List[Report]:
    result = await db.execute(
        select(Report)
        .where(Report.created_by == principal.id)
        .order_by(Report.created_at.desc())
    )
    return result.scalars().all()

# --- Intake ---

async def _find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalars().first()

async def resolve_reporter(db: AsyncSession, principal: Optional[Principal], reporter_email: Optional[str]) -> UUID:
    """The authenticated principal, or the user behind an e-mail (created as a guest if unknown)."""
    if principal is not None:
        return principal.id
    if not reporter_email or not reporter_email.strip():
        raise ValidationError("reporter_email is required for anonymous reports")

    email = normalize_email(reporter_email)
    user = await _find_user_by_email(db, email)
    if user:
        return user.id

    user = User(email=email, role=UserRole.CITIZEN, auth_mode=AuthMode.GUEST)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent request created the same guest
        await db.rollback()
        user = await _find_user_by_email(db, email)
        if not user:
            raise
        return user.id
    logger.info(f"[Reports] Created guest user for {email}")
    return user.id

def _clean_district(district: Optional[str], config: Dict[str, Any]) -> Optional[str]:
    if district is None:
        return None
    district = district.strip()
    if not district:
        return None
    if district not in config["districts"]:
        raise ValidationError(f"Unknown district: {district}")
    return district

async def create_report(db: AsyncSession, report_in: ReportCreate, principal: Optional[Principal]) -> Report:
    config = await get_system_config(db)
    if report_in.category.value not in config["report_categories"]:
        raise ValidationError(f"Category not enabled: {report_in.category.value}")
    district = _clean_district(report_in.district, config)

    reporter_id = await resolve_reporter(db, principal, report_in.reporter_email)

    report = Report(
        category=report_in.category,
        description=report_in.description.strip(),
        latitude=report_in.location.lat,
        longitude=report_in.location.lng,
        address_text=(report_in.address_text or "").strip() or None,
        district=district,
        photo_urls=[],
        created_by=reporter_id,
    )
    start_history(report, reporter_id)
    db.add(report)
    await db.flush()

    add_event(
        db, report.id, ReportEventType.REPORT_CREATED,
        actor_id=reporter_id,
        data={"category": report.category.value, "district": district},
    )
    await db.commit()
    logger.info(f"[Reports] Report {report.id} created ({report.category.value})")
    return report

async def upload_photos(
    db: AsyncSession,
    report_id: UUID,
    files: List[UploadFile],
    principal: Optional[Principal],
    email: Optional[str] = None
) -> Report:
    report = await get_report_or_404(db, report_id)
    await _ensure_can_view(db, report, principal, email)
    if report.status == ReportStatus.CLOSED:
        raise ConflictError("Photos cannot be added to a closed report")

    config = await get_system_config(db)
    urls = await storage.save_batch(files, config["photo_max_files"], config["photo_max_mb"])

    # Reassign so the JSON column is flagged as changed
    report.photo_urls = list(report.photo_urls or []) + urls
    try:
        await _commit_or_conflict(db)
    except Exception:
        storage.discard(urls)
        raise
    logger.info(f"[Reports] {len(urls)} photo(s) added to report {report.id}")
    return report

# --- Lifecycle ---

async def change_status(
    db: AsyncSession,
    report_id: UUID,
    target: ReportStatus,
    actor: Optional[Principal],
    note: Optional[str] = None
) -> Report:
    """
    Move a report through the workflow.

    The transition is committed first. The STATUS_CHANGED event, the reporter
    notification and (on CLOSED) the survey follow as separate steps whose
    failures are logged and never undo the transition.
    """
    report = await get_report_or_404(db, report_id)
    current = report.status
    note = validate_transition(current, target, actor, note)

    apply_transition(report, target, actor.id, note)
    await _commit_or_conflict(db)

    # Side effects may roll the session back; keep plain values, not the instance
    reporter_id = report.created_by
    category = report.category.value
    address = report.address_text
    logger.info(f"[Reports] Report {report_id} {current.value} -> {target.value} by {actor.id}")

    await record_event_detached(
        db, report_id, ReportEventType.STATUS_CHANGED,
        actor_id=actor.id,
        note=note,
        data={"from": current.value, "to": target.value},
    )
    await notify_status_change(db, report_id, reporter_id, target, category=category, address=address, note=note)
    if target == ReportStatus.CLOSED:
        await dispatch_survey(db, report_id, reporter_id, category=category, address=address)

    return await _reload(db, report_id)

async def set_triage(
    db: AsyncSession,
    report_id: UUID,
    impact: int,
    urgency: int,
    priority_override: Optional[PriorityLevel],
    actor: Optional[Principal]
) -> Report:
    """An absent or null override clears any previous override."""
    _require_staff(actor)
    try:
        computed = priority_calc.compute_priority(impact, urgency)
    except ValueError as e:
        raise ValidationError(str(e))
    if priority_override is not None:
        try:
            priority_override = PriorityLevel(priority_override)
        except ValueError:
            raise ValidationError(f"Invalid priority override: {priority_override}")

    report = await get_report_or_404(db, report_id)
    report.impact = impact
    report.urgency = urgency
    report.priority = computed
    report.priority_override = priority_override
    report.priority_updated_at = utcnow()
    report.priority_updated_by = actor.id

    add_event(
        db, report.id, ReportEventType.TRIAGE_UPDATED,
        actor_id=actor.id,
        data={
            "impact": impact,
            "urgency": urgency,
            "priority": computed.value,
            "priorityOverride": priority_override.value if priority_override else None,
        },
    )
    await _commit_or_conflict(db)
    logger.info(f"[Reports] Report {report.id} triaged: {impact}/{urgency} -> {report.effective_priority.value}")
    return report

async def assign(
    db: AsyncSession,
    report_id: UUID,
    assignee_id: Optional[UUID],
    actor: Optional[Principal],
    note: Optional[str] = None
) -> Report:
    _require_staff(actor)
    report = await get_report_or_404(db, report_id)

    if assignee_id is not None:
        assignee = await db.get(User, assignee_id)
        if assignee is None or not assignee.is_active or not assignee.is_staff:
            raise ValidationError("Assignee must be an active staff member")
        report.assigned_to = assignee_id
        report.assigned_at = utcnow()
        report.assigned_by = actor.id
    else:
        report.assigned_to = None
        report.assigned_at = None
        report.assigned_by = None

    add_event(
        db, report.id, ReportEventType.ASSIGNED,
        actor_id=actor.id,
        note=clean_note(note),
        data={"assignedTo": str(assignee_id) if assignee_id else None},
    )
    await _commit_or_conflict(db)
    return report

async def schedule(
    db: AsyncSession,
    report_id: UUID,
    scheduled_at: datetime,
    actor: Optional[Principal],
    sla_hours: Optional[float] = None,
    sla_target_at: Optional[datetime] = None,
    note: Optional[str] = None
) -> Report:
    """
    Set the work date and SLA target. An explicit sla_target_at wins over sla_hours;
    with neither, the report has no SLA. Breach is evaluated now, not tracked over time.
    """
    _require_staff(actor)
    scheduled_at = as_utc(scheduled_at)
    if sla_target_at is not None:
        target = as_utc(sla_target_at)
    elif sla_hours is not None:
        if sla_hours <= 0:
            raise ValidationError("sla_hours must be greater than 0")
        target = scheduled_at + timedelta(hours=sla_hours)
    else:
        target = None

    report = await get_report_or_404(db, report_id)
    now = utcnow()
    report.scheduled_at = scheduled_at
    report.sla_target_at = target
    report.sla_breached_at = now if target is not None and target < now else None

    add_event(
        db, report.id, ReportEventType.SCHEDULED,
        actor_id=actor.id,
        note=clean_note(note),
        data={
            "scheduledAt": _iso(report.scheduled_at),
            "slaTargetAt": _iso(report.sla_target_at),
            "slaBreachedAt": _iso(report.sla_breached_at),
        },
    )
    await _commit_or_conflict(db)
    return report

async def update_district(
    db: AsyncSession,
    report_id: UUID,
    district: Optional[str],
    actor: Optional[Principal],
    note: Optional[str] = None
) -> Report:
    _require_staff(actor)
    config = await get_system_config(db)
    district = _clean_district(district, config)

    report = await get_report_or_404(db, report_id)
    previous = report.district
    report.district = district

    add_event(
        db, report.id, ReportEventType.DISTRICT_UPDATED,
        actor_id=actor.id,
        note=clean_note(note),
        data={"from": previous, "to": district},
    )
    await _commit_or_conflict(db)
    return report

async def add_comment(db: AsyncSession, report_id: UUID, note: str, actor: Optional[Principal]):
    _require_staff(actor)
    note = clean_note(note)
    if not note:
        raise ValidationError("note must not be empty")
    report = await get_report_or_404(db, report_id)
    event = add_event(db, report.id, ReportEventType.COMMENT, actor_id=actor.id, note=note)
    await db.commit()
    return event

# --- Evidence and audit trail ---

async def add_evidence(
    db: AsyncSession,
    report_id: UUID,
    evidence_type: EvidenceType,
    files: List[UploadFile],
    actor: Optional[Principal],
    note: Optional[str] = None
) -> List[ReportEvidence]:
    _require_staff(actor)
    report = await get_report_or_404(db, report_id)
    config = await get_system_config(db)
    urls = await storage.save_batch(files, config["photo_max_files"], config["photo_max_mb"])

    note = clean_note(note)
    items = []
    for url in urls:
        evidence = ReportEvidence(
            report_id=report.id,
            type=evidence_type,
            url=url,
            note=note,
            uploaded_by=actor.id,
        )
        db.add(evidence)
        items.append(evidence)

    add_event(
        db, report.id, ReportEventType.EVIDENCE_ADDED,
        actor_id=actor.id,
        note=note,
        data={"type": evidence_type.value, "urls": urls},
    )
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        storage.discard(urls)
        raise
    return items

async def list_evidence(
    db: AsyncSession,
    report_id: UUID,
    principal: Optional[Principal],
    evidence_type: Optional[EvidenceType] = None,
    email: Optional[str] = None
) -> List[ReportEvidence]:
    report = await get_report(db, report_id, principal, email)

    query = select(ReportEvidence).where(ReportEvidence.report_id == report.id)
    if evidence_type is not None:
        query = query.where(ReportEvidence.type == evidence_type)
    result = await db.execute(query.order_by(ReportEvidence.created_at.asc()))
    return result.scalars().all()

async def list_events(
    db: AsyncSession,
    report_id: UUID,
    principal: Optional[Principal],
    email: Optional[str] = None
):
    report = await get_report(db, report_id, principal, email)
    return await _list_events(db, report.id)

# --- Listings ---

def _priority_filter(priority: PriorityLevel):
    """Match the effective priority: the override when set, the computed tier otherwise."""
    return or_(
        Report.priority_override == priority,
        and_(Report.priority_override.is_(None), Report.priority == priority),
    )

async def list_reports_admin(
    db: AsyncSession,
    status: Optional[ReportStatus] = None,
    category: Optional[ReportCategory] = None,
    q: Optional[str] = None,
    priority: Optional[PriorityLevel] = None,
    page: int = 1,
    size: int = 20
) -> Dict[str, Any]:
    query = select(Report)
    if status is not None:
        query = query.where(Report.status == status)
    if category is not None:
        query = query.where(Report.category == category)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.where(or_(Report.description.ilike(pattern), Report.address_text.ilike(pattern)))
    if priority is not None:
        query = query.where(_priority_filter(priority))

    count_res = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_res.scalar() or 0

    result = await db.execute(
        query.order_by(Report.created_at.desc())
        .offset((page - 1) * size)
        .limit(size)
    )
    return {
        "items": result.scalars().all(),
        "total": total,
        "page": page,
        "size": size,
        "pages": math.ceil(total / size) if size else 0,
    }

def validate_bbox(min_lng: float, min_lat: float, max_lng: float, max_lat: float):
    for value in (min_lng, max_lng):
        if not -180 <= value <= 180:
            raise ValidationError("Invalid bbox: longitude out of range")
    for value in (min_lat, max_lat):
        if not -90 <= value <= 90:
            raise ValidationError("Invalid bbox: latitude out of range")
    if min_lng >= max_lng or min_lat >= max_lat:
        raise ValidationError("Invalid bbox: min must be lower than max")

def clamp_map_limit(limit: Optional[int], max_points: int) -> int:
    if limit is None:
        limit = DEFAULT_MAP_LIMIT
    return min(max(limit, 1), max_points)

async def list_map_points(
    db: AsyncSession,
    min_lng: float,
    min_lat: float,
    max_lng: float,
    max_lat: float,
    category: Optional[ReportCategory] = None,
    status: Optional[ReportStatus] = None,
    priority: Optional[PriorityLevel] = None,
    limit: Optional[int] = None,
    include_address: bool = False
) -> Dict[str, Any]:
    validate_bbox(min_lng, min_lat, max_lng, max_lat)
    config = await get_system_config(db)
    limit = clamp_map_limit(limit, config["map_max_points"])

    # Column select: no ORM instances, no history loading
    query = select(
        Report.id, Report.category, Report.status, Report.latitude, Report.longitude,
        Report.created_at, Report.priority, Report.priority_override, Report.address_text,
    ).where(
        Report.longitude.between(min_lng, max_lng),
        Report.latitude.between(min_lat, max_lat),
    )
    if category is not None:
        query = query.where(Report.category == category)
    if status is not None:
        query = query.where(Report.status == status)
    if priority is not None:
        query = query.where(_priority_filter(priority))

    result = await db.execute(query.order_by(Report.created_at.desc()).limit(limit))
    items = []
    for row in result.all():
        item = {
            "id": row.id,
            "category": row.category,
            "status": row.status,
            "lat": row.latitude,
            "lng": row.longitude,
            "created_at": row.created_at,
            "effective_priority": priority_calc.effective_priority(row.priority, row.priority_override),
        }
        if include_address:
            item["address_text"] = row.address_text
        items.append(item)
    return {"items": items, "count": len(items)}

def _hours_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 3600

def _mean(samples: List[float]) -> Optional[float]:
    return sum(samples) / len(samples) if samples else None

async def get_metrics_summary(db: AsyncSession) -> Dict[str, Any]:
    by_status = {s.value: 0 for s in ReportStatus}
    status_res = await db.execute(select(Report.status, func.count(Report.id)).group_by(Report.status))
    for status, count in status_res.all():
        by_status[status.value] = count

    by_category = {c.value: 0 for c in ReportCategory}
    category_res = await db.execute(select(Report.category, func.count(Report.id)).group_by(Report.category))
    for category, count in category_res.all():
        by_category[category.value] = count

    total = sum(by_status.values())
    closed = by_status[ReportStatus.CLOSED.value]

    # First time each report reached RECEIVED / VERIFIED / CLOSED
    milestones = (ReportStatus.RECEIVED, ReportStatus.VERIFIED, ReportStatus.CLOSED)
    history_res = await db.execute(
        select(ReportStatusEntry.report_id, ReportStatusEntry.status, func.min(ReportStatusEntry.at))
        .where(ReportStatusEntry.status.in_(milestones))
        .group_by(ReportStatusEntry.report_id, ReportStatusEntry.status)
    )
    firsts: Dict[UUID, Dict[ReportStatus, datetime]] = {}
    for report_id, status, at in history_res.all():
        firsts.setdefault(report_id, {})[status] = at

    mtta_samples = []
    mttr_samples = []
    for times in firsts.values():
        received_at = times.get(ReportStatus.RECEIVED)
        if received_at is None:
            continue
        if ReportStatus.VERIFIED in times:
            mtta_samples.append(_hours_between(received_at, times[ReportStatus.VERIFIED]))
        if ReportStatus.CLOSED in times:
            mttr_samples.append(_hours_between(received_at, times[ReportStatus.CLOSED]))

    return {
        "totals": {"all": total, "open": total - closed, "closed": closed},
        "by_status": by_status,
        "by_category": by_category,
        "mtta_hours_avg": _mean(mtta_samples),
        "mttr_hours_avg": _mean(mttr_samples),
    }
