from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from clinicbook.core.errors import ValidationError
from clinicbook.models.availability import AvailabilityRule


def day_of_week(slot_date: date) -> int:
    """Sunday-based weekday (0=Sunday .. 6=Saturday) used by availability rules."""
    return (slot_date.weekday() + 1) % 7


def iterate_rule_starts(start_time: time, end_time: time, slot_date: date, duration: timedelta) -> list[time]:
    starts: list[time] = []
    current = datetime.combine(slot_date, start_time)
    window_end = datetime.combine(slot_date, end_time)

    while current + duration <= window_end:
        starts.append(current.time())
        current += duration

    return starts


def generate_slots(
    rules: Iterable[AvailabilityRule],
    slot_date: date,
    slot_duration_minutes: int,
) -> list[time]:
    """Candidate start times for ``slot_date`` from a doctor's weekly rules.

    Only active rules for the date's weekday contribute. Overlapping rules may
    emit the same start time; the result is deduplicated and sorted, so the
    same input always yields the same list.
    """
    if slot_duration_minutes <= 0:
        raise ValidationError('Slot duration must be a positive number of minutes.')

    duration = timedelta(minutes=slot_duration_minutes)
    weekday = day_of_week(slot_date)
    slots: set[time] = set()

    for rule in rules:
        if not rule.is_active or rule.day_of_week != weekday:
            continue
        if rule.start_time >= rule.end_time:
            continue
        slots.update(iterate_rule_starts(rule.start_time, rule.end_time, slot_date, duration))

    return sorted(slots)
