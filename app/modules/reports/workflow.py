"""
Status transition engine for reports.

The transition graph is fixed and exhaustive: a move that is not listed is
rejected, including a "move" to the status the report already has.

    RECEIVED    -> VERIFIED
    VERIFIED    -> SCHEDULED
    SCHEDULED   -> IN_PROGRESS
    IN_PROGRESS -> RESOLVED
    RESOLVED    -> CLOSED
    CLOSED      -> REOPENED
    REOPENED    -> IN_PROGRESS, VERIFIED

Only staff may move a report, and RESOLVED / CLOSED require a note. All checks
run before the report is touched; ``apply_transition`` is the only code path
that changes ``Report.status``.
"""
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional
from uuid import UUID

from app.core.db import as_utc, utcnow
from app.core.exceptions import ConflictError, ForbiddenError, ValidationError
from app.modules.auth.schemas import Principal
from app.modules.reports.models import Report, ReportStatus, ReportStatusEntry

S = ReportStatus

TRANSITIONS: Mapping[ReportStatus, FrozenSet[ReportStatus]] = MappingProxyType({
    S.RECEIVED: frozenset({S.VERIFIED}),
    S.VERIFIED: frozenset({S.SCHEDULED}),
    S.SCHEDULED: frozenset({S.IN_PROGRESS}),
    S.IN_PROGRESS: frozenset({S.RESOLVED}),
    S.RESOLVED: frozenset({S.CLOSED}),
    S.CLOSED: frozenset({S.REOPENED}),
    S.REOPENED: frozenset({S.IN_PROGRESS, S.VERIFIED}),
})

NOTE_REQUIRED: FrozenSet[ReportStatus] = frozenset({S.RESOLVED, S.CLOSED})

INITIAL_STATUS = S.RECEIVED


def allowed_next(current: ReportStatus) -> FrozenSet[ReportStatus]:
    return TRANSITIONS.get(current, frozenset())


def clean_note(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    note = note.strip()
    return note or None


def validate_transition(
    current: ReportStatus,
    target: ReportStatus,
    actor: Optional[Principal],
    note: Optional[str],
) -> Optional[str]:
    """
    Run every rule for ``current -> target`` and return the cleaned note.
    Raises ForbiddenError, ConflictError or ValidationError; never mutates anything.
    """
    if actor is None or not actor.is_staff:
        raise ForbiddenError("Only staff can change a report's status")

    if target not in allowed_next(current):
        raise ConflictError(f"Transition not allowed: {current.value} -> {target.value}")

    cleaned = clean_note(note)
    if target in NOTE_REQUIRED and not cleaned:
        raise ValidationError(f"A note is required to move a report to {target.value}")
    return cleaned


def start_history(report: Report, actor_id: Optional[UUID]) -> ReportStatusEntry:
    """Put a new report in its initial status with the synthetic first history entry."""
    report.status = INITIAL_STATUS
    entry = ReportStatusEntry(position=0, status=INITIAL_STATUS, at=utcnow(), by=actor_id)
    report.status_history = [entry]
    return entry


def apply_transition(
    report: Report,
    target: ReportStatus,
    actor_id: UUID,
    note: Optional[str],
) -> ReportStatusEntry:
    history = report.status_history
    at = utcnow()
    position = 0
    if history:
        last = history[-1]
        position = last.position + 1
        # keep history monotonic even if the clock steps backwards
        if last.at is not None and as_utc(last.at) > at:
            at = as_utc(last.at)

    entry = ReportStatusEntry(position=position, status=target, at=at, by=actor_id, note=note)
    history.append(entry)
    report.status = target
    return entry
