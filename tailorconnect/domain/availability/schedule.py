"""
Weekly availability template

A schedule holds seven day entries (index 0 = Monday, matching
``date.weekday()``), each with the open windows for that day in minutes since
midnight, tailor-local. Date exceptions override single calendar days.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ...errors import ValidationError
from ...shared.validators import MINUTES_PER_DAY, format_time

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end) in minutes of day"""

    start: int
    end: int

    def overlaps(self, other_start: int, other_end: int) -> bool:
        return self.start < other_end and other_start < self.end

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}

    def to_display(self) -> dict:
        return {"start": format_time(self.start), "end": format_time(self.end)}


@dataclass(frozen=True)
class DaySchedule:
    is_open: bool = False
    windows: tuple[TimeWindow, ...] = ()

    def to_dict(self) -> dict:
        return {"isOpen": self.is_open, "windows": [w.to_dict() for w in self.windows]}


@dataclass(frozen=True)
class DateException:
    date: date
    is_available: bool = False
    windows: tuple[TimeWindow, ...] = ()
    reason: Optional[str] = None


@dataclass(frozen=True)
class WeeklySchedule:
    days: tuple[DaySchedule, ...] = field(default_factory=lambda: tuple(DaySchedule() for _ in range(7)))
    slot_duration_minutes: int = 60
    buffer_minutes: int = 15
    advance_booking_days: int = 30
    timezone: str = "UTC"
    exceptions: tuple[DateException, ...] = ()

    def windows_for(self, day: date) -> tuple[TimeWindow, ...]:
        """Open windows for a calendar date, honouring date exceptions"""
        for exception in self.exceptions:
            if exception.date == day:
                return exception.windows if exception.is_available else ()

        day_schedule = self.days[day.weekday()]
        if not day_schedule.is_open:
            return ()
        return day_schedule.windows

    def to_storage(self) -> list[dict]:
        return [d.to_dict() for d in self.days]


def closed_schedule(**settings) -> WeeklySchedule:
    """The default for a tailor that never saved availability: every day closed"""
    return WeeklySchedule(**settings)


def validate_windows(windows: list[TimeWindow], label: str) -> tuple[TimeWindow, ...]:
    """Check start < end, range and non-overlap; return the windows sorted by start"""
    for w in windows:
        if not 0 <= w.start < MINUTES_PER_DAY or not 0 < w.end <= MINUTES_PER_DAY:
            raise ValidationError(f"{label}: window {w.start}-{w.end} is outside of the day")
        if w.start >= w.end:
            raise ValidationError(
                f"{label}: window {format_time(w.start)}-{format_time(w.end)} must start before it ends"
            )

    ordered = sorted(windows, key=lambda w: w.start)
    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.end:
            raise ValidationError(
                f"{label}: windows {format_time(previous.start)}-{format_time(previous.end)} and "
                f"{format_time(current.start)}-{format_time(current.end)} overlap"
            )
    return tuple(ordered)


def validate_schedule(schedule: WeeklySchedule) -> WeeklySchedule:
    """Validate a whole schedule and return it with normalized (sorted) windows"""
    if len(schedule.days) != 7:
        raise ValidationError("Schedule must define exactly seven days")
    if schedule.slot_duration_minutes <= 0:
        raise ValidationError("Slot duration must be greater than 0 minutes")
    if schedule.slot_duration_minutes > MINUTES_PER_DAY:
        raise ValidationError("Slot duration cannot exceed one day")
    if schedule.buffer_minutes < 0:
        raise ValidationError("Buffer time cannot be negative")
    if schedule.advance_booking_days <= 0:
        raise ValidationError("Advance booking days must be greater than 0")

    days = tuple(
        DaySchedule(is_open=d.is_open, windows=validate_windows(list(d.windows), DAY_NAMES[i]))
        for i, d in enumerate(schedule.days)
    )

    seen_dates = set()
    exceptions = []
    for exc in schedule.exceptions:
        if exc.date in seen_dates:
            raise ValidationError(f"Duplicate exception for {exc.date.isoformat()}")
        seen_dates.add(exc.date)
        exceptions.append(
            DateException(
                date=exc.date,
                is_available=exc.is_available,
                windows=validate_windows(list(exc.windows), exc.date.isoformat()),
                reason=exc.reason,
            )
        )

    return WeeklySchedule(
        days=days,
        slot_duration_minutes=schedule.slot_duration_minutes,
        buffer_minutes=schedule.buffer_minutes,
        advance_booking_days=schedule.advance_booking_days,
        timezone=schedule.timezone,
        exceptions=tuple(sorted(exceptions, key=lambda e: e.date)),
    )
