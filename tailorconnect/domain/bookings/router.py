"""Booking router - FastAPI endpoints for the booking lifecycle"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...database import get_db
from ...rate_limiter import booking_rate_limit
from ...services.notification_service import Notifier, get_notifier
from ..quotes.schemas import QuoteRejection, QuoteSubmission
from .schemas import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    PaymentConfirmation,
    ReasonRequest,
    TailorBookingStats,
)
from .service import BookingService, booking_to_response, list_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])
admin_router = APIRouter(prefix="/admin/bookings", tags=["Admin"])


def get_booking_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, notifier)


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_rate_limit)],
)
async def create_booking(
    data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Customer books a consultation slot with a tailor"""
    return booking_to_response(service.create_booking(actor, data))


@router.get("/customer", response_model=BookingListResponse)
async def get_customer_bookings(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    bookings, total = service.list_customer_bookings(actor, status, page, limit)
    return list_response(bookings, total, page, limit)


@router.get("/tailor", response_model=BookingListResponse)
async def get_tailor_bookings(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    bookings, total = service.list_tailor_bookings(actor, status, page, limit)
    return list_response(bookings, total, page, limit)


@router.get("/stats", response_model=TailorBookingStats)
async def get_booking_stats(
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Counts per status and the next confirmed bookings for the current tailor"""
    return service.get_tailor_stats(actor)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return booking_to_response(service.get_booking(booking_id, actor))


@router.put("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return booking_to_response(service.accept(booking_id, actor))


@router.put("/{booking_id}/decline", response_model=BookingResponse)
async def decline_booking(
    booking_id: int,
    data: ReasonRequest,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return booking_to_response(service.decline(booking_id, actor, data.reason))


@router.put("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    data: ReasonRequest,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return booking_to_response(service.cancel(booking_id, actor, data.reason))


@router.put("/{booking_id}/complete-consultation", response_model=BookingResponse)
async def complete_consultation(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return booking_to_response(service.complete_consultation(booking_id, actor))


@router.put("/{booking_id}/quote", response_model=BookingResponse)
async def submit_quote(
    booking_id: int,
    data: QuoteSubmission,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Tailor submits the cost breakdown and stage estimates"""
    return booking_to_response(service.submit_quote(booking_id, actor, data))


@router.put("/{booking_id}/accept-quote", response_model=BookingResponse)
async def accept_quote(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return booking_to_response(service.accept_quote(booking_id, actor))


@router.put("/{booking_id}/reject-quote", response_model=BookingResponse)
async def reject_quote(
    booking_id: int,
    data: QuoteRejection,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return booking_to_response(service.reject_quote(booking_id, actor, data.reason))


@admin_router.get("/stats")
async def get_admin_booking_stats(
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    return service.get_admin_stats(actor)


@admin_router.get("/reconciliation", response_model=list[BookingResponse])
async def get_bookings_needing_reconciliation(
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Paid bookings whose order could not be created"""
    return [booking_to_response(b) for b in service.list_needing_reconciliation(actor)]


@admin_router.post("/{booking_id}/reconcile", response_model=PaymentConfirmation)
async def reconcile_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    booking, order = service.reconcile(booking_id, actor)
    return PaymentConfirmation(booking=booking_to_response(booking), orderId=order.id)
