from datetime import date, time

import pytest

from clinicbook.core.errors import ValidationError
from clinicbook.models.availability import AvailabilityRule
from clinicbook.services.slot_generator import day_of_week, generate_slots

MONDAY = date(2026, 1, 5)


def _rule(day: int, start: time, end: time, is_active: bool = True) -> AvailabilityRule:
    return AvailabilityRule(doctor_id=1, day_of_week=day, start_time=start, end_time=end, is_active=is_active)


def test_day_of_week_counts_from_sunday() -> None:
    assert day_of_week(date(2026, 1, 4)) == 0
    assert day_of_week(MONDAY) == 1
    assert day_of_week(date(2026, 1, 10)) == 6


def test_generate_slots_returns_hourly_starts_for_monday_morning() -> None:
    rules = [_rule(1, time(9, 0), time(12, 0))]

    assert generate_slots(rules, MONDAY, 60) == [time(9, 0), time(10, 0), time(11, 0)]


def test_generate_slots_drops_trailing_partial_slot() -> None:
    rules = [_rule(1, time(9, 0), time(10, 45))]

    assert generate_slots(rules, MONDAY, 30) == [time(9, 0), time(9, 30), time(10, 0)]


def test_generate_slots_ignores_inactive_and_other_day_rules() -> None:
    rules = [
        _rule(1, time(9, 0), time(10, 0), is_active=False),
        _rule(2, time(9, 0), time(12, 0)),
        _rule(1, time(14, 0), time(15, 0)),
    ]

    assert generate_slots(rules, MONDAY, 60) == [time(14, 0)]


def test_generate_slots_deduplicates_overlapping_rules_and_sorts() -> None:
    rules = [
        _rule(1, time(10, 0), time(12, 0)),
        _rule(1, time(9, 0), time(11, 0)),
    ]

    assert generate_slots(rules, MONDAY, 60) == [time(9, 0), time(10, 0), time(11, 0)]


def test_generate_slots_is_deterministic_regardless_of_rule_order() -> None:
    rules = [
        _rule(1, time(13, 0), time(15, 0)),
        _rule(1, time(9, 0), time(10, 30)),
        _rule(1, time(9, 30), time(11, 0)),
    ]

    first = generate_slots(rules, MONDAY, 30)
    second = generate_slots(list(reversed(rules)), MONDAY, 30)

    assert first == second
    assert first == sorted(set(first))


def test_generate_slots_returns_empty_without_rules() -> None:
    assert generate_slots([], MONDAY, 60) == []


def test_generate_slots_returns_empty_when_duration_exceeds_window() -> None:
    rules = [_rule(1, time(9, 0), time(9, 30))]

    assert generate_slots(rules, MONDAY, 60) == []


@pytest.mark.parametrize('duration', [0, -15])
def test_generate_slots_rejects_non_positive_duration(duration: int) -> None:
    with pytest.raises(ValidationError):
        generate_slots([_rule(1, time(9, 0), time(12, 0))], MONDAY, duration)
