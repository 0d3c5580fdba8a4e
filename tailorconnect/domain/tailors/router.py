"""Tailor router - FastAPI endpoints for profiles, availability and slots"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...database import get_db
from ...shared.validators import parse_date
from .schemas import (
    AvailabilityResponse,
    AvailabilityUpdate,
    TailorProfileResponse,
    TailorProfileUpsert,
    TimeWindowOut,
)
from .service import TailorService, schedule_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tailors", tags=["Tailors"])


def get_tailor_service(db: Session = Depends(get_db)) -> TailorService:
    """Dependency injection for TailorService"""
    return TailorService(db)


def _profile_response(profile) -> TailorProfileResponse:
    return TailorProfileResponse(
        id=profile.id,
        username=profile.username,
        businessName=profile.business_name,
        acceptingBookings=profile.accepting_bookings,
    )


@router.put("/me/profile", response_model=TailorProfileResponse)
async def upsert_my_profile(
    data: TailorProfileUpsert,
    actor: Actor = Depends(get_current_actor),
    service: TailorService = Depends(get_tailor_service),
):
    """Create or update the current tailor's profile"""
    return _profile_response(service.upsert_profile(actor, data))


@router.get("/me/profile", response_model=TailorProfileResponse)
async def get_my_profile(
    actor: Actor = Depends(get_current_actor),
    service: TailorService = Depends(get_tailor_service),
):
    return _profile_response(service.get_own_profile(actor))


@router.put("/me/availability", response_model=AvailabilityResponse)
async def update_my_availability(
    data: AvailabilityUpdate,
    actor: Actor = Depends(get_current_actor),
    service: TailorService = Depends(get_tailor_service),
):
    """Replace the current tailor's weekly schedule and date exceptions"""
    schedule = service.update_availability(actor, data)
    return schedule_to_response(schedule)


@router.get("/{username}/availability", response_model=AvailabilityResponse)
async def get_tailor_availability(
    username: str,
    service: TailorService = Depends(get_tailor_service),
):
    """Public view of a tailor's weekly schedule"""
    return schedule_to_response(service.get_availability(username))


@router.get("/{username}/slots/{date}", response_model=list[TimeWindowOut])
async def get_available_slots(
    username: str,
    date: str,
    service: TailorService = Depends(get_tailor_service),
):
    """Free slots for a tailor on a date (YYYY-MM-DD), as HH:MM pairs"""
    slots = service.get_slots(username, parse_date(date))
    return [TimeWindowOut(**slot.to_display()) for slot in slots]
