"""Availability service - Schedule store and slot lookup"""

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from ...config import (
    DEFAULT_ADVANCE_BOOKING_DAYS,
    DEFAULT_BUFFER_MINUTES,
    DEFAULT_SLOT_DURATION_MINUTES,
    DEFAULT_TIMEZONE,
)
from ...errors import ValidationError
from .repository import AvailabilityRepository, to_weekly_schedule
from .schedule import TimeWindow, WeeklySchedule, closed_schedule, validate_schedule
from .slots import generate_slots

logger = logging.getLogger(__name__)


def tailor_today(timezone_name: str) -> date:
    """Today's date in the tailor's timezone"""
    return datetime.now(ZoneInfo(timezone_name)).date()


def validate_timezone(timezone_name: str) -> str:
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone '{timezone_name}'") from None
    return timezone_name


class AvailabilityService:
    """Service layer for schedules and slot generation"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AvailabilityRepository()

    def get_schedule(self, tailor_id: int) -> WeeklySchedule:
        """Stored schedule, or an all-closed default when none was saved"""
        record = self.repo.get_availability(self.db, tailor_id)
        if record is None:
            return closed_schedule(
                slot_duration_minutes=DEFAULT_SLOT_DURATION_MINUTES,
                buffer_minutes=DEFAULT_BUFFER_MINUTES,
                advance_booking_days=DEFAULT_ADVANCE_BOOKING_DAYS,
                timezone=DEFAULT_TIMEZONE,
            )
        return to_weekly_schedule(record)

    def set_schedule(self, tailor_id: int, schedule: WeeklySchedule) -> WeeklySchedule:
        """Validate and replace the tailor's schedule wholesale"""
        validate_timezone(schedule.timezone)
        schedule = validate_schedule(schedule)
        self.repo.save_schedule(self.db, tailor_id, schedule)
        self.db.commit()
        logger.info(
            f"🗓️ Schedule saved for tailor {tailor_id}: "
            f"{sum(1 for d in schedule.days if d.is_open)} open days, "
            f"{schedule.slot_duration_minutes}m slots, {schedule.buffer_minutes}m buffer"
        )
        return schedule

    def generate_slots(self, tailor_id: int, day: date) -> list[TimeWindow]:
        """Free slots for a tailor on a date"""
        schedule = self.get_schedule(tailor_id)
        booked = self.repo.get_booked_ranges(self.db, tailor_id, day)
        return generate_slots(schedule, day, booked, tailor_today(schedule.timezone))
