"""
Priority calculator.

The score is ``impact + urgency`` (each 1..5, so 2..10) and maps onto four tiers:

    2-4  -> LOW
    5-6  -> MEDIUM
    7-8  -> HIGH
    9-10 -> CRITICAL

A manual override, when present, always wins over the computed tier.
"""
from typing import Optional

from app.modules.reports.models import PriorityLevel

MIN_SCALE = 1
MAX_SCALE = 5

# (upper bound of score, tier), checked in order
_TIERS = (
    (4, PriorityLevel.LOW),
    (6, PriorityLevel.MEDIUM),
    (8, PriorityLevel.HIGH),
)


def is_valid_scale(value) -> bool:
    # bool is an int subclass; True/False are not valid ratings
    return isinstance(value, int) and not isinstance(value, bool) and MIN_SCALE <= value <= MAX_SCALE


def compute_priority(impact: int, urgency: int) -> PriorityLevel:
    if not is_valid_scale(impact):
        raise ValueError(f"impact must be an integer in [{MIN_SCALE}, {MAX_SCALE}], got {impact!r}")
    if not is_valid_scale(urgency):
        raise ValueError(f"urgency must be an integer in [{MIN_SCALE}, {MAX_SCALE}], got {urgency!r}")

    score = impact + urgency
    for upper, tier in _TIERS:
        if score <= upper:
            return tier
    return PriorityLevel.CRITICAL


def effective_priority(
    computed: Optional[PriorityLevel],
    override: Optional[PriorityLevel],
) -> Optional[PriorityLevel]:
    return override if override is not None else computed
