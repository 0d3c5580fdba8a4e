"""
Slot generation

Pure functions: the same schedule, date, bookings and "today" always give the
same slots, and nothing is read or written outside the arguments.
"""

from datetime import date, timedelta
from typing import Iterable

from .schedule import TimeWindow, WeeklySchedule


def within_horizon(schedule: WeeklySchedule, day: date, today: date) -> bool:
    """True when ``day`` is bookable: not in the past, not beyond the advance window"""
    return today <= day <= today + timedelta(days=schedule.advance_booking_days)


def candidate_slots(schedule: WeeklySchedule, day: date) -> list[TimeWindow]:
    """Every slot the template offers on ``day``, ignoring bookings"""
    step = schedule.slot_duration_minutes + schedule.buffer_minutes
    candidates = []
    for window in schedule.windows_for(day):
        start = window.start
        while start + schedule.slot_duration_minutes <= window.end:
            candidates.append(TimeWindow(start, start + schedule.slot_duration_minutes))
            start += step
    return candidates


def generate_slots(
    schedule: WeeklySchedule,
    day: date,
    booked: Iterable[tuple[int, int]],
    today: date,
) -> list[TimeWindow]:
    """
    Free slots for ``day``.

    Args:
        schedule: The tailor's validated weekly schedule
        day: Calendar date being booked (tailor-local)
        booked: (start, end) minute ranges of the slot-holding bookings on ``day``
        today: Current date in the tailor's timezone

    Returns:
        Free slots in chronological order
    """
    if not within_horizon(schedule, day, today):
        return []

    taken = list(booked)
    free = [
        slot
        for slot in candidate_slots(schedule, day)
        if not any(slot.overlaps(start, end) for start, end in taken)
    ]
    return sorted(free, key=lambda s: s.start)


def fits_open_hours(schedule: WeeklySchedule, day: date, start: int, end: int) -> bool:
    """True when [start, end) lies entirely inside one open window of ``day``"""
    return any(w.start <= start and end <= w.end for w in schedule.windows_for(day))


def is_offered_slot(schedule: WeeklySchedule, day: date, start: int, end: int) -> bool:
    """True when [start, end) is exactly one of the template's slots for ``day``"""
    return TimeWindow(start, end) in candidate_slots(schedule, day)
