"""Availability repository - Database operations for tailor schedules"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import AvailabilityException, Booking, TailorAvailability
from ...statuses import SLOT_HOLDING_STATUSES
from .schedule import DateException, DaySchedule, TimeWindow, WeeklySchedule


def _windows(raw: list[dict]) -> tuple[TimeWindow, ...]:
    return tuple(TimeWindow(int(w["start"]), int(w["end"])) for w in raw or [])


def to_weekly_schedule(record: TailorAvailability) -> WeeklySchedule:
    """Map a stored availability row onto the WeeklySchedule value object"""
    return WeeklySchedule(
        days=tuple(
            DaySchedule(is_open=bool(d.get("isOpen")), windows=_windows(d.get("windows")))
            for d in record.schedule
        ),
        slot_duration_minutes=record.slot_duration_minutes,
        buffer_minutes=record.buffer_minutes,
        advance_booking_days=record.advance_booking_days,
        timezone=record.timezone,
        exceptions=tuple(
            DateException(
                date=e.date,
                is_available=e.is_available,
                windows=_windows(e.windows),
                reason=e.reason,
            )
            for e in record.exceptions
        ),
    )


class AvailabilityRepository:
    """Repository for schedule and slot-occupancy queries"""

    @staticmethod
    def get_availability(db: Session, tailor_id: int) -> Optional[TailorAvailability]:
        return (
            db.query(TailorAvailability)
            .options(selectinload(TailorAvailability.exceptions))
            .filter(TailorAvailability.tailor_id == tailor_id)
            .first()
        )

    @staticmethod
    def lock_availability(db: Session, tailor_id: int) -> Optional[TailorAvailability]:
        """Row-lock the tailor's availability; serializes booking writes per tailor"""
        return (
            db.query(TailorAvailability)
            .filter(TailorAvailability.tailor_id == tailor_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def save_schedule(db: Session, tailor_id: int, schedule: WeeklySchedule) -> TailorAvailability:
        """Replace the tailor's schedule and exceptions wholesale (caller commits)"""
        record = AvailabilityRepository.get_availability(db, tailor_id)
        if record is None:
            record = TailorAvailability(tailor_id=tailor_id)
            db.add(record)

        record.schedule = schedule.to_storage()
        record.slot_duration_minutes = schedule.slot_duration_minutes
        record.buffer_minutes = schedule.buffer_minutes
        record.advance_booking_days = schedule.advance_booking_days
        record.timezone = schedule.timezone
        record.exceptions = [
            AvailabilityException(
                date=e.date,
                is_available=e.is_available,
                windows=[w.to_dict() for w in e.windows],
                reason=e.reason,
            )
            for e in schedule.exceptions
        ]
        return record

    @staticmethod
    def get_booked_ranges(
        db: Session, tailor_id: int, day: date, exclude_booking_id: Optional[int] = None
    ) -> list[tuple[int, int]]:
        """(start, end) minute ranges of slot-holding bookings on a date"""
        query = db.query(Booking.start_minute, Booking.end_minute).filter(
            Booking.tailor_id == tailor_id,
            Booking.date == day,
            Booking.status.in_([s.value for s in SLOT_HOLDING_STATUSES]),
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return [(row.start_minute, row.end_minute) for row in query.all()]
