import pytest

from app.modules.reports.models import PriorityLevel
from app.modules.reports.priority import compute_priority, effective_priority, is_valid_scale

ORDER = [PriorityLevel.LOW, PriorityLevel.MEDIUM, PriorityLevel.HIGH, PriorityLevel.CRITICAL]


@pytest.mark.parametrize("impact,urgency,expected", [
    (1, 1, PriorityLevel.LOW),
    (2, 2, PriorityLevel.LOW),
    (1, 3, PriorityLevel.LOW),
    (3, 2, PriorityLevel.MEDIUM),
    (3, 3, PriorityLevel.MEDIUM),
    (4, 3, PriorityLevel.HIGH),
    (4, 4, PriorityLevel.HIGH),
    (5, 4, PriorityLevel.CRITICAL),
    (5, 5, PriorityLevel.CRITICAL),
])
def test_compute_priority_tiers(impact, urgency, expected):
    assert compute_priority(impact, urgency) == expected


def test_tier_depends_only_on_the_sum():
    for impact in range(1, 6):
        for urgency in range(1, 6):
            assert compute_priority(impact, urgency) == compute_priority(urgency, impact)


def test_priority_is_monotone_in_each_argument():
    for impact in range(1, 6):
        for urgency in range(1, 5):
            lower = ORDER.index(compute_priority(impact, urgency))
            higher = ORDER.index(compute_priority(impact, urgency + 1))
            assert higher >= lower


@pytest.mark.parametrize("impact,urgency", [(0, 3), (6, 3), (3, 0), (3, 6), (2.5, 3), (True, 3), ("3", 3)])
def test_compute_priority_rejects_out_of_range(impact, urgency):
    with pytest.raises(ValueError):
        compute_priority(impact, urgency)


def test_is_valid_scale():
    assert is_valid_scale(1)
    assert is_valid_scale(5)
    assert not is_valid_scale(False)
    assert not is_valid_scale(None)


def test_effective_priority_prefers_override():
    assert effective_priority(PriorityLevel.CRITICAL, PriorityLevel.LOW) == PriorityLevel.LOW
    assert effective_priority(PriorityLevel.CRITICAL, None) == PriorityLevel.CRITICAL
    assert effective_priority(None, None) is None
