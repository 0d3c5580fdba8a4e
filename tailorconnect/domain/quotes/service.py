"""
Quote sub-ledger

Validates the tailor's cost breakdown and turns it into Quote rows. The
booking service owns the state transitions around a quote; this module only
knows about money and estimates.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ...errors import InvalidTransitionError, ValidationError
from ...models import Quote, QuoteItem
from ...shared.validators import clean_text
from ...statuses import QuoteStatus
from .schemas import QuoteResponse, QuoteSubmission

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Largest difference tolerated between a supplied total and the computed one
TOTAL_TOLERANCE = Decimal("0.01")
BREAKDOWN_FIELDS = {"items", "laborCost", "materialCost"}


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_total(data: QuoteSubmission) -> Decimal:
    """laborCost + materialCost + sum(quantity * unitPrice)"""
    items_total = sum(
        (Decimal(item.quantity) * _money(item.unitPrice) for item in data.items), Decimal("0")
    )
    return (_money(data.laborCost) + _money(data.materialCost) + items_total).quantize(CENT)


def validate_submission(data: QuoteSubmission) -> Decimal:
    """
    Check a quote for negative or inconsistent amounts.

    Returns:
        The total amount to store

    Raises:
        ValidationError: On negative costs, non-positive quantities or day
            estimates, or a supplied total that does not match the components
    """
    if data.laborCost < 0:
        raise ValidationError("Labor cost cannot be negative")
    if data.materialCost < 0:
        raise ValidationError("Material cost cannot be negative")
    for index, item in enumerate(data.items):
        if not item.description or not item.description.strip():
            raise ValidationError(f"Item {index + 1} needs a description")
        if item.quantity <= 0:
            raise ValidationError(f"Item {index + 1} quantity must be at least 1")
        if item.unitPrice < 0:
            raise ValidationError(f"Item {index + 1} unit price cannot be negative")

    days = data.estimatedDays
    for name, value in (("design", days.design), ("sew", days.sew), ("deliver", days.deliver)):
        if value < 1:
            raise ValidationError(f"Estimated {name} days must be at least 1")

    if len(data.currency) != 3:
        raise ValidationError("Currency must be a 3-letter code")

    computed = compute_total(data)
    if data.totalAmount is not None:
        supplied = _money(data.totalAmount)
        if supplied < 0:
            raise ValidationError("Total amount cannot be negative")
        # A bare total is stored as given; it is only checked against a breakdown
        if not data.model_fields_set & BREAKDOWN_FIELDS:
            return supplied
        if abs(supplied - computed) > TOTAL_TOLERANCE:
            raise ValidationError(
                f"Total amount {supplied} does not match items, labor and material ({computed})"
            )
    return computed


def build_quote(booking_id: int, data: QuoteSubmission) -> Quote:
    """Validate a submission and build the (unsaved) Quote with its items"""
    total = validate_submission(data)
    quote = Quote(
        booking_id=booking_id,
        labor_cost=float(_money(data.laborCost)),
        material_cost=float(_money(data.materialCost)),
        total_amount=float(total),
        currency=data.currency.upper(),
        design_days=data.estimatedDays.design,
        sew_days=data.estimatedDays.sew,
        deliver_days=data.estimatedDays.deliver,
        notes=clean_text(data.notes, 1000, "Quote notes"),
        status=QuoteStatus.SUBMITTED.value,
        items=[
            QuoteItem(
                description=clean_text(item.description, 255, "Item description"),
                quantity=item.quantity,
                unit_price=float(_money(item.unitPrice)),
            )
            for item in data.items
        ],
    )
    logger.info(f"💰 Quote built for booking {booking_id}: total {total} {quote.currency}")
    return quote


def respond(quote: Quote, accepted: bool, reason: Optional[str] = None) -> Quote:
    """Record the customer's answer; a quote can only be answered once"""
    if quote.status != QuoteStatus.SUBMITTED.value:
        raise InvalidTransitionError(
            f"Quote was already {quote.status}",
            current_state=quote.status,
            attempted_action="accept_quote" if accepted else "reject_quote",
        )
    quote.status = QuoteStatus.ACCEPTED.value if accepted else QuoteStatus.REJECTED.value
    quote.rejection_reason = None if accepted else reason
    quote.responded_at = datetime.utcnow()
    return quote


def quote_to_response(quote: Quote) -> QuoteResponse:
    return QuoteResponse(
        items=[
            {"description": i.description, "quantity": i.quantity, "unitPrice": i.unit_price}
            for i in quote.items
        ],
        laborCost=quote.labor_cost,
        materialCost=quote.material_cost,
        totalAmount=quote.total_amount,
        currency=quote.currency,
        estimatedDays={
            "design": quote.design_days,
            "sew": quote.sew_days,
            "deliver": quote.deliver_days,
        },
        notes=quote.notes,
        status=quote.status,
        rejectionReason=quote.rejection_reason,
        submittedAt=quote.submitted_at,
        respondedAt=quote.responded_at,
    )
