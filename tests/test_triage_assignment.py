from datetime import timedelta

import pytest
from sqlalchemy import select

from app.core.db import as_utc, utcnow
from app.core.exceptions import ForbiddenError, ValidationError
from app.modules.auth.models import UserRole
from app.modules.reports import service
from app.modules.reports.models import PriorityLevel, ReportEvent, ReportEventType, ReportStatus

from conftest import principal_for


async def last_event(db, report_id, event_type):
    result = await db.execute(
        select(ReportEvent)
        .where(ReportEvent.report_id == report_id, ReportEvent.type == event_type)
        .order_by(ReportEvent.created_at.desc())
    )
    return result.scalars().first()


@pytest.mark.asyncio
async def test_triage_override_then_clear(db, operator, make_report):
    report = await make_report()
    actor = principal_for(operator)

    report = await service.set_triage(db, report.id, 5, 5, None, actor)
    assert report.priority == PriorityLevel.CRITICAL
    assert report.effective_priority == PriorityLevel.CRITICAL

    report = await service.set_triage(db, report.id, 5, 5, PriorityLevel.LOW, actor)
    assert report.priority == PriorityLevel.CRITICAL
    assert report.effective_priority == PriorityLevel.LOW

    report = await service.set_triage(db, report.id, 5, 5, None, actor)
    assert report.priority_override is None
    assert report.effective_priority == PriorityLevel.CRITICAL
    assert report.priority_updated_by == operator.id

    event = await last_event(db, report.id, ReportEventType.TRIAGE_UPDATED)
    assert event.data == {"impact": 5, "urgency": 5, "priority": "CRITICAL", "priorityOverride": None}


@pytest.mark.asyncio
async def test_triage_rejects_invalid_scale(db, operator, make_report):
    report = await make_report()
    with pytest.raises(ValidationError):
        await service.set_triage(db, report.id, 0, 3, None, principal_for(operator))
    report = await service.get_report_or_404(db, report.id)
    assert report.priority is None


@pytest.mark.asyncio
async def test_triage_is_staff_only(db, citizen, make_report):
    report = await make_report()
    with pytest.raises(ForbiddenError):
        await service.set_triage(db, report.id, 3, 3, None, principal_for(citizen))


@pytest.mark.asyncio
async def test_assign_to_deactivated_user_fails(db, operator, make_user, make_report):
    report = await make_report()
    active = await make_user(UserRole.OPERATOR)
    inactive = await make_user(UserRole.OPERATOR, is_active=False)

    report = await service.assign(db, report.id, active.id, principal_for(operator))
    assert report.assigned_to == active.id

    with pytest.raises(ValidationError):
        await service.assign(db, report.id, inactive.id, principal_for(operator))

    report = await service.get_report_or_404(db, report.id)
    assert report.assigned_to == active.id


@pytest.mark.asyncio
async def test_assign_to_citizen_fails_and_null_unassigns(db, citizen, operator, make_report):
    report = await make_report()
    with pytest.raises(ValidationError):
        await service.assign(db, report.id, citizen.id, principal_for(operator))

    report = await service.assign(db, report.id, operator.id, principal_for(operator), note="Take it")
    report = await service.assign(db, report.id, None, principal_for(operator))
    assert report.assigned_to is None
    assert report.assigned_at is None

    event = await last_event(db, report.id, ReportEventType.ASSIGNED)
    assert event.data == {"assignedTo": None}


@pytest.mark.asyncio
async def test_schedule_with_past_target_is_breached(db, operator, make_report):
    report = await make_report()
    scheduled_at = utcnow() - timedelta(days=2)

    report = await service.schedule(db, report.id, scheduled_at, principal_for(operator), sla_hours=24)
    assert as_utc(report.sla_target_at) == scheduled_at + timedelta(hours=24)
    assert report.sla_breached_at is not None
    assert report.status == ReportStatus.RECEIVED


@pytest.mark.asyncio
async def test_schedule_explicit_target_wins_and_clears_breach(db, operator, make_report):
    report = await make_report()
    scheduled_at = utcnow() - timedelta(days=2)
    target = utcnow() + timedelta(days=3)

    await service.schedule(db, report.id, scheduled_at, principal_for(operator), sla_hours=1)
    report = await service.schedule(
        db, report.id, scheduled_at, principal_for(operator), sla_hours=1, sla_target_at=target
    )
    assert as_utc(report.sla_target_at) == target
    assert report.sla_breached_at is None

    event = await last_event(db, report.id, ReportEventType.SCHEDULED)
    assert event.data["slaBreachedAt"] is None
    assert event.data["slaTargetAt"] == target.isoformat()


@pytest.mark.asyncio
async def test_schedule_rejects_non_positive_sla(db, operator, make_report):
    report = await make_report()
    with pytest.raises(ValidationError):
        await service.schedule(db, report.id, utcnow(), principal_for(operator), sla_hours=0)


@pytest.mark.asyncio
async def test_update_district_logs_from_and_to(db, operator, make_report):
    report = await make_report(district="Norte")
    report = await service.update_district(db, report.id, "Sur", principal_for(operator))
    assert report.district == "Sur"

    event = await last_event(db, report.id, ReportEventType.DISTRICT_UPDATED)
    assert event.data == {"from": "Norte", "to": "Sur"}

    with pytest.raises(ValidationError):
        await service.update_district(db, report.id, "Nowhere", principal_for(operator))


@pytest.mark.asyncio
async def test_events_are_listed_oldest_first_for_owner(db, citizen, operator, make_report):
    report = await make_report()
    await service.add_comment(db, report.id, "Crew notified", principal_for(operator))
    await service.change_status(db, report.id, ReportStatus.VERIFIED, principal_for(operator))

    events = await service.list_events(db, report.id, principal_for(citizen))
    assert [e.type for e in events] == [
        ReportEventType.REPORT_CREATED,
        ReportEventType.COMMENT,
        ReportEventType.STATUS_CHANGED,
    ]


@pytest.mark.asyncio
async def test_admin_list_filters_on_effective_priority(db, operator, make_report):
    actor = principal_for(operator)
    overridden = await make_report()
    computed = await make_report(description="Street light flickering all night")
    await service.set_triage(db, overridden.id, 5, 5, PriorityLevel.LOW, actor)
    await service.set_triage(db, computed.id, 1, 1, None, actor)

    low = await service.list_reports_admin(db, priority=PriorityLevel.LOW)
    assert {r.id for r in low["items"]} == {overridden.id, computed.id}
    critical = await service.list_reports_admin(db, priority=PriorityLevel.CRITICAL)
    assert critical["total"] == 0

    found = await service.list_reports_admin(db, q="flickering")
    assert [r.id for r in found["items"]] == [computed.id]


@pytest.mark.asyncio
async def test_map_bbox_and_limit(db, make_report):
    await make_report()
    await make_report(location={"coordinates": [2.35, 48.85]})

    result = await service.list_map_points(db, -60, -35, -58, -34)
    assert result["count"] == 1
    assert "address_text" not in result["items"][0]

    result = await service.list_map_points(db, -180, -90, 180, 90, limit=0)
    assert result["count"] == 1

    with pytest.raises(ValidationError):
        await service.list_map_points(db, 10, 0, 5, 1)


@pytest.mark.asyncio
async def test_metrics_summary(db, operator, make_report):
    closed = await make_report()
    await make_report()
    for target, note in [
        (ReportStatus.VERIFIED, None),
        (ReportStatus.SCHEDULED, None),
        (ReportStatus.IN_PROGRESS, None),
        (ReportStatus.RESOLVED, "done"),
        (ReportStatus.CLOSED, "ok"),
    ]:
        await service.change_status(db, closed.id, target, principal_for(operator), note)

    summary = await service.get_metrics_summary(db)
    assert summary["totals"] == {"all": 2, "open": 1, "closed": 1}
    assert summary["by_status"]["CLOSED"] == 1
    assert summary["by_status"]["RECEIVED"] == 1
    assert summary["by_status"]["REOPENED"] == 0
    assert summary["by_category"] == {"POTHOLE": 2, "STREETLIGHT": 0, "SIDEWALK": 0, "DRAINAGE": 0}
    assert summary["mtta_hours_avg"] is not None and summary["mtta_hours_avg"] >= 0
    assert summary["mttr_hours_avg"] is not None


@pytest.mark.asyncio
async def test_metrics_without_samples_are_null(db):
    summary = await service.get_metrics_summary(db)
    assert summary["mtta_hours_avg"] is None
    assert summary["mttr_hours_avg"] is None
    assert summary["totals"]["all"] == 0
