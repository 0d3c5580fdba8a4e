"""Payment router - Signed callbacks from the payment collaborator"""

import logging

from fastapi import APIRouter, Depends

from ...auth import PAYMENT_ACTOR
from ..bookings.router import get_booking_service
from ..bookings.schemas import PaymentConfirmation
from ..bookings.service import BookingService, booking_to_response
from .webhook_security import verify_payment_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/bookings/{booking_id}/confirm", response_model=PaymentConfirmation)
async def confirm_booking_payment(
    booking_id: int,
    _body: bytes = Depends(verify_payment_signature),
    service: BookingService = Depends(get_booking_service),
):
    """
    Payment succeeded for a booking with an accepted quote.

    Converts the booking into an order. Repeated callbacks return the same
    order. Answers 503 when the payment was recorded but the order could not
    be created yet; the booking is then listed for reconciliation.
    """
    logger.info(f"💳 Payment confirmation received for booking {booking_id}")
    booking, order = service.confirm_payment(booking_id, PAYMENT_ACTOR)
    return PaymentConfirmation(booking=booking_to_response(booking), orderId=order.id)
