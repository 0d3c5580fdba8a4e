"""Tailor service - Profiles, availability and slot lookup by username"""

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import Actor
from ...errors import NotFoundError, UnauthorizedActorError, ValidationError
from ...models import TailorProfile
from ...shared.validators import parse_time
from ...statuses import ActorRole
from ..availability.schedule import (
    DAY_NAMES,
    DateException,
    DaySchedule,
    TimeWindow,
    WeeklySchedule,
)
from ..availability.service import AvailabilityService
from .repository import TailorRepository
from .schemas import AvailabilityUpdate, TailorProfileUpsert

logger = logging.getLogger(__name__)


def _to_windows(raw) -> tuple[TimeWindow, ...]:
    return tuple(
        TimeWindow(parse_time(w.start), parse_time(w.end, allow_end_of_day=True)) for w in raw
    )


def schedule_from_request(data: AvailabilityUpdate) -> WeeklySchedule:
    """Convert the HH:MM request body into a WeeklySchedule"""
    days = tuple(
        DaySchedule(
            is_open=getattr(data.schedule, name).isOpen,
            windows=_to_windows(getattr(data.schedule, name).windows),
        )
        for name in DAY_NAMES
    )
    return WeeklySchedule(
        days=days,
        slot_duration_minutes=data.slotDuration,
        buffer_minutes=data.bufferTime,
        advance_booking_days=data.advanceBookingDays,
        timezone=data.timezone,
        exceptions=tuple(
            DateException(
                date=e.date,
                is_available=e.isAvailable,
                windows=_to_windows(e.windows),
                reason=e.reason,
            )
            for e in data.exceptions
        ),
    )


def schedule_to_response(schedule: WeeklySchedule) -> dict:
    return {
        "schedule": {
            name: {
                "isOpen": schedule.days[i].is_open,
                "windows": [w.to_display() for w in schedule.days[i].windows],
            }
            for i, name in enumerate(DAY_NAMES)
        },
        "slotDuration": schedule.slot_duration_minutes,
        "bufferTime": schedule.buffer_minutes,
        "advanceBookingDays": schedule.advance_booking_days,
        "timezone": schedule.timezone,
        "exceptions": [
            {
                "date": e.date,
                "isAvailable": e.is_available,
                "windows": [w.to_display() for w in e.windows],
                "reason": e.reason,
            }
            for e in schedule.exceptions
        ],
    }


class TailorService:
    """Service layer for tailor-facing operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TailorRepository()
        self.availability = AvailabilityService(db)

    def get_by_username(self, username: str) -> TailorProfile:
        tailor = self.repo.get_by_username(self.db, username)
        if not tailor:
            raise NotFoundError("Tailor not found")
        return tailor

    def get_own_profile(self, actor: Actor) -> TailorProfile:
        if actor.role != ActorRole.TAILOR:
            raise UnauthorizedActorError("Only tailors have a tailor profile")
        tailor = self.repo.get_by_user_id(self.db, actor.id)
        if not tailor:
            raise NotFoundError("Tailor profile not found")
        return tailor

    def upsert_profile(self, actor: Actor, data: TailorProfileUpsert) -> TailorProfile:
        if actor.role != ActorRole.TAILOR:
            raise UnauthorizedActorError("Only tailors can create a tailor profile")
        try:
            profile = self.repo.upsert_profile(
                self.db,
                actor.id,
                username=data.username,
                business_name=data.businessName,
                accepting_bookings=data.acceptingBookings,
            )
        except IntegrityError:
            self.db.rollback()
            raise ValidationError(f"Username '{data.username}' is already taken") from None
        logger.info(f"👤 Tailor profile saved: {profile.username} (user {actor.id})")
        return profile

    def update_availability(self, actor: Actor, data: AvailabilityUpdate) -> WeeklySchedule:
        tailor = self.get_own_profile(actor)
        return self.availability.set_schedule(tailor.id, schedule_from_request(data))

    def get_availability(self, username: str) -> WeeklySchedule:
        tailor = self.get_by_username(username)
        return self.availability.get_schedule(tailor.id)

    def get_slots(self, username: str, day: date) -> list[TimeWindow]:
        tailor = self.get_by_username(username)
        if not tailor.accepting_bookings:
            return []
        return self.availability.generate_slots(tailor.id, day)
