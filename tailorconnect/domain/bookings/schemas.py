"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from ..quotes.schemas import QuoteResponse


class BookingCreate(BaseModel):
    """Body of POST /bookings"""

    tailorUsername: str
    date: str
    startTime: str
    endTime: str
    service: str
    notes: Optional[str] = None
    measurementProfileId: Optional[str] = None


class ReasonRequest(BaseModel):
    reason: Optional[str] = None


class StatusChangeResponse(BaseModel):
    fromStatus: Optional[str] = None
    toStatus: str
    action: str
    actorId: Optional[str] = None
    note: Optional[str] = None
    changedAt: Optional[datetime] = None


class BookingResponse(BaseModel):
    id: int
    tailorId: int
    tailorUsername: Optional[str] = None
    customerId: str
    date: date
    startTime: str
    endTime: str
    service: str
    notes: Optional[str] = None
    measurementProfileId: Optional[str] = None
    status: str
    statusLabel: str
    allowedActions: list[str]
    quote: Optional[QuoteResponse] = None
    orderId: Optional[int] = None
    declineReason: Optional[str] = None
    cancellationReason: Optional[str] = None
    requiresReconciliation: bool = False
    createdAt: Optional[datetime] = None
    statusHistory: list[StatusChangeResponse] = []


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class BookingListResponse(BaseModel):
    data: list[BookingResponse]
    pagination: Pagination


class TailorBookingStats(BaseModel):
    stats: dict[str, int]
    upcomingBookings: list[BookingResponse]


class PaymentConfirmation(BaseModel):
    """Result of a payment confirmation: the converted booking and its order"""

    booking: BookingResponse
    orderId: int
