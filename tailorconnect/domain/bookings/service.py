"""
Booking service - Creation, lifecycle transitions and payment conversion

Two invariants are enforced here:

* No two slot-holding bookings of one tailor overlap. Creation takes a
  per-tailor lock (in-process) and a row lock on the tailor's availability
  (database), then re-checks overlap before the insert.
* A paid booking is converted into exactly one order, atomically. If the
  order cannot be created the payment is still recorded, the booking stays
  ``paid`` with ``requires_reconciliation`` set, and a later retry converts it.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...auth import PAYMENT_ACTOR, SYSTEM_ACTOR, Actor
from ...errors import (
    ConversionFailedError,
    InvalidTransitionError,
    NotFoundError,
    PreconditionError,
    SlotUnavailableError,
    UnauthorizedActorError,
    ValidationError,
)
from ...models import Booking, Order
from ...services.notification_service import LoggingNotifier, Notifier
from ...shared.validators import clean_text, format_time, parse_date, parse_time
from ...statuses import ActorRole, BookingStatus
from ..availability.repository import AvailabilityRepository
from ..availability.service import AvailabilityService, tailor_today
from ..availability.slots import fits_open_hours, is_offered_slot, within_horizon
from ..orders.service import convert_booking_to_order, paginate
from ..quotes.schemas import QuoteSubmission
from ..quotes.service import build_quote, quote_to_response, respond
from ..tailors.repository import TailorRepository
from .repository import BookingRepository
from .schemas import BookingCreate, BookingResponse
from .state_machine import BookingAction, booking_machine

logger = logging.getLogger(__name__)

_tailor_locks: dict[int, threading.Lock] = {}
_tailor_locks_guard = threading.Lock()


def tailor_lock(tailor_id: int) -> threading.Lock:
    """The in-process lock serializing booking writes for one tailor"""
    with _tailor_locks_guard:
        return _tailor_locks.setdefault(tailor_id, threading.Lock())


def booking_to_response(booking: Booking) -> BookingResponse:
    status = BookingStatus(booking.status)
    return BookingResponse(
        id=booking.id,
        tailorId=booking.tailor_id,
        tailorUsername=booking.tailor.username if booking.tailor else None,
        customerId=booking.customer_id,
        date=booking.date,
        startTime=format_time(booking.start_minute),
        endTime=format_time(booking.end_minute),
        service=booking.service,
        notes=booking.notes,
        measurementProfileId=booking.measurement_profile_id,
        status=status.value,
        statusLabel=status.label,
        allowedActions=[a.value for a in booking_machine.allowed_actions(status)],
        quote=quote_to_response(booking.quote) if booking.quote else None,
        orderId=booking.order.id if booking.order else None,
        declineReason=booking.decline_reason,
        cancellationReason=booking.cancellation_reason,
        requiresReconciliation=booking.requires_reconciliation,
        createdAt=booking.created_at,
        statusHistory=[
            {
                "fromStatus": c.from_status,
                "toStatus": c.to_status,
                "action": c.action,
                "actorId": c.actor_id,
                "note": c.note,
                "changedAt": c.changed_at,
            }
            for c in booking.status_history
        ],
    )


class BookingService:
    """Service layer for the booking lifecycle"""

    def __init__(self, db: Session, notifier: Optional[Notifier] = None):
        self.db = db
        self.repo = BookingRepository()
        self.tailors = TailorRepository()
        self.availability = AvailabilityService(db)
        self.notifier = notifier or LoggingNotifier()

    def _publish(self, event: str, booking: Booking, **payload) -> None:
        self.notifier.publish(
            event,
            {
                "bookingId": booking.id,
                "tailorId": booking.tailor_id,
                "customerId": booking.customer_id,
                "status": booking.status,
                **payload,
            },
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_booking(self, actor: Actor, data: BookingCreate) -> Booking:
        """
        Reserve a time range with a tailor.

        Raises:
            UnauthorizedActorError: The caller is not a customer
            NotFoundError: Unknown tailor username
            PreconditionError: The tailor is not accepting bookings
            ValidationError: Malformed times, or a date outside the booking horizon
            SlotUnavailableError: Outside open hours, not an offered slot, or
                overlapping another booking
        """
        if actor.role != ActorRole.CUSTOMER:
            raise UnauthorizedActorError("Only customers can create bookings")

        tailor = self.tailors.get_by_username(self.db, data.tailorUsername)
        if not tailor:
            raise NotFoundError("Tailor not found")
        if not tailor.accepting_bookings:
            raise PreconditionError("This tailor is not accepting bookings")

        day = parse_date(data.date)
        start = parse_time(data.startTime)
        end = parse_time(data.endTime, allow_end_of_day=True)
        if start >= end:
            raise ValidationError("Start time must be before end time")
        service = clean_text(data.service, 200, "Service")
        if not service:
            raise ValidationError("Service is required")
        notes = clean_text(data.notes, 1000, "Notes")

        with tailor_lock(tailor.id):
            try:
                AvailabilityRepository.lock_availability(self.db, tailor.id)
                schedule = self.availability.get_schedule(tailor.id)
                if not within_horizon(schedule, day, tailor_today(schedule.timezone)):
                    raise ValidationError(
                        f"Bookings must be made between today and "
                        f"{schedule.advance_booking_days} days ahead"
                    )
                if not fits_open_hours(schedule, day, start, end):
                    raise SlotUnavailableError(
                        f"{data.startTime}-{data.endTime} on {day.isoformat()} is outside the tailor's open hours"
                    )
                if not is_offered_slot(schedule, day, start, end):
                    raise SlotUnavailableError(
                        f"{data.startTime}-{data.endTime} on {day.isoformat()} is not one of the tailor's slots"
                    )
                if self.repo.find_overlapping(self.db, tailor.id, day, start, end):
                    raise SlotUnavailableError(
                        f"{data.startTime}-{data.endTime} on {day.isoformat()} is no longer available"
                    )

                booking = Booking(
                    tailor_id=tailor.id,
                    customer_id=actor.id,
                    date=day,
                    start_minute=start,
                    end_minute=end,
                    service=service,
                    notes=notes,
                    measurement_profile_id=data.measurementProfileId,
                    status=BookingStatus.PENDING.value,
                )
                self.db.add(booking)
                self.repo.add_status_change(
                    self.db, booking, None, BookingStatus.PENDING.value, "create", actor.id
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            f"📅 Booking {booking.id} created: tailor {tailor.username} on {day.isoformat()} "
            f"{format_time(start)}-{format_time(end)}"
        )
        self._publish("booking.created", booking, date=day, startTime=format_time(start))
        return booking

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _load_for_update(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking_for_update(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def _check_party(self, booking: Booking, actor: Actor, action: BookingAction) -> None:
        """Tailors and customers may only act on their own bookings"""
        if actor.role == ActorRole.TAILOR and booking.tailor.user_id != actor.id:
            raise UnauthorizedActorError(
                "This booking belongs to another tailor",
                current_state=booking.status,
                attempted_action=action.value,
            )
        if actor.role == ActorRole.CUSTOMER and booking.customer_id != actor.id:
            raise UnauthorizedActorError(
                "This booking belongs to another customer",
                current_state=booking.status,
                attempted_action=action.value,
            )

    def _transition(
        self,
        booking_id: int,
        actor: Actor,
        action: BookingAction,
        mutate: Optional[Callable[[Booking], None]] = None,
        precheck: Optional[Callable[[Booking], None]] = None,
        note: Optional[str] = None,
    ) -> Booking:
        """Validate, apply and commit one state-machine transition"""
        try:
            booking = self._load_for_update(booking_id)
            self._check_party(booking, actor, action)
            if precheck:
                precheck(booking)
            new_status = booking_machine.transition(booking.status, action, actor.role)
            if mutate:
                mutate(booking)

            previous = booking.status
            booking.status = new_status.value
            self.repo.add_status_change(
                self.db, booking, previous, new_status.value, action.value, actor.id, note
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"🔄 Booking {booking.id}: {previous} --{action.value}--> {new_status.value}")
        self._publish(f"booking.{action.value}", booking, previousStatus=previous, note=note)
        return booking

    def accept(self, booking_id: int, actor: Actor) -> Booking:
        return self._transition(booking_id, actor, BookingAction.ACCEPT)

    def decline(self, booking_id: int, actor: Actor, reason: Optional[str] = None) -> Booking:
        reason = clean_text(reason, 500, "Decline reason")

        def mutate(booking: Booking) -> None:
            booking.decline_reason = reason

        return self._transition(booking_id, actor, BookingAction.DECLINE, mutate, note=reason)

    def cancel(self, booking_id: int, actor: Actor, reason: Optional[str] = None) -> Booking:
        """Customer cancels a pending or confirmed booking; the slot is freed"""
        reason = clean_text(reason, 500, "Cancellation reason")

        def mutate(booking: Booking) -> None:
            booking.cancellation_reason = reason
            booking.cancelled_at = datetime.utcnow()

        return self._transition(booking_id, actor, BookingAction.CANCEL, mutate, note=reason)

    def complete_consultation(self, booking_id: int, actor: Actor) -> Booking:
        return self._transition(booking_id, actor, BookingAction.COMPLETE_CONSULTATION)

    def submit_quote(self, booking_id: int, actor: Actor, data: QuoteSubmission) -> Booking:
        def mutate(booking: Booking) -> None:
            booking.quote = build_quote(booking.id, data)

        return self._transition(booking_id, actor, BookingAction.SUBMIT_QUOTE, mutate)

    def _require_quote(self, action: BookingAction) -> Callable[[Booking], None]:
        def precheck(booking: Booking) -> None:
            if booking.quote is None:
                raise PreconditionError(
                    "This booking has no quote yet",
                    current_state=booking.status,
                    attempted_action=action.value,
                )

        return precheck

    def accept_quote(self, booking_id: int, actor: Actor) -> Booking:
        def mutate(booking: Booking) -> None:
            respond(booking.quote, accepted=True)

        return self._transition(
            booking_id,
            actor,
            BookingAction.ACCEPT_QUOTE,
            mutate,
            precheck=self._require_quote(BookingAction.ACCEPT_QUOTE),
        )

    def reject_quote(self, booking_id: int, actor: Actor, reason: Optional[str]) -> Booking:
        """Customer turns the quote down; the booking ends as cancelled"""
        reason = clean_text(reason, 500, "Rejection reason")
        if not reason:
            raise ValidationError("A reason is required to reject a quote")

        def mutate(booking: Booking) -> None:
            respond(booking.quote, accepted=False, reason=reason)
            booking.cancellation_reason = reason
            booking.cancelled_at = datetime.utcnow()

        return self._transition(
            booking_id,
            actor,
            BookingAction.REJECT_QUOTE,
            mutate,
            precheck=self._require_quote(BookingAction.REJECT_QUOTE),
            note=reason,
        )

    # ------------------------------------------------------------------
    # Payment and conversion
    # ------------------------------------------------------------------

    def confirm_payment(self, booking_id: int, actor: Actor = PAYMENT_ACTOR) -> tuple[Booking, Order]:
        """
        Record payment and convert the booking into an order.

        Safe to call again: a converted booking returns its existing order and
        a paid booking (a previous conversion failed) retries the conversion.

        Raises:
            InvalidTransitionError: The booking is not awaiting payment
            ConversionFailedError: Payment was recorded but the order could
                not be created; the booking is flagged for reconciliation
        """
        try:
            booking = self._load_for_update(booking_id)
            if booking.status == BookingStatus.CONVERTED.value:
                self.db.commit()
                logger.info(f"ℹ️ Payment for booking {booking.id} already converted")
                return booking, booking.order

            paid_now = booking.status != BookingStatus.PAID.value
            if paid_now:
                new_status = booking_machine.transition(
                    booking.status, BookingAction.CONFIRM_PAYMENT, actor.role
                )
                previous = booking.status
                booking.status = new_status.value
                self.repo.add_status_change(
                    self.db,
                    booking,
                    previous,
                    new_status.value,
                    BookingAction.CONFIRM_PAYMENT.value,
                    actor.id,
                )
        except Exception:
            self.db.rollback()
            raise

        return self._convert(booking, payment_actor=actor if paid_now else None)

    def _convert(self, booking: Booking, payment_actor: Optional[Actor] = None) -> tuple[Booking, Order]:
        """
        Move a paid booking to converted and create its order in one commit.

        ``payment_actor`` is set when the payment itself is part of the same
        transaction and must survive a failed conversion.
        """
        booking_id = booking.id
        try:
            new_status = booking_machine.transition(
                booking.status, BookingAction.CONVERT, SYSTEM_ACTOR.role
            )
            order = convert_booking_to_order(self.db, booking, SYSTEM_ACTOR.id)
            booking.status = new_status.value
            booking.requires_reconciliation = False
            self.repo.add_status_change(
                self.db,
                booking,
                BookingStatus.PAID.value,
                new_status.value,
                BookingAction.CONVERT.value,
                SYSTEM_ACTOR.id,
                f"Order {order.id}",
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to convert booking {booking_id} into an order: {e}")
            self._flag_for_reconciliation(booking_id, payment_actor, str(e))
            raise ConversionFailedError(
                "Payment was recorded but the order could not be created. It will be retried.",
                current_state=BookingStatus.PAID.value,
                attempted_action=BookingAction.CONVERT.value,
            ) from e

        logger.info(f"✅ Booking {booking.id} converted into order {order.id}")
        if payment_actor is not None:
            self._publish("booking.confirm_payment", booking, previousStatus=BookingStatus.QUOTE_ACCEPTED.value)
        self._publish("booking.convert", booking, orderId=order.id)
        return booking, order

    def _flag_for_reconciliation(
        self, booking_id: int, payment_actor: Optional[Actor], error: str
    ) -> None:
        """Persist the payment on its own and mark the booking for a retry"""
        try:
            booking = self._load_for_update(booking_id)
            if payment_actor is not None and booking.status == BookingStatus.QUOTE_ACCEPTED.value:
                booking.status = BookingStatus.PAID.value
                self.repo.add_status_change(
                    self.db,
                    booking,
                    BookingStatus.QUOTE_ACCEPTED.value,
                    BookingStatus.PAID.value,
                    BookingAction.CONFIRM_PAYMENT.value,
                    payment_actor.id,
                    "Order creation failed",
                )
            booking.requires_reconciliation = True
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.warning(f"⚠️ Booking {booking_id} flagged for reconciliation: {error}")
        self._publish("booking.conversion_failed", booking, error=error)

    def reconcile(self, booking_id: int, actor: Actor) -> tuple[Booking, Order]:
        """Admin retry of a conversion that failed after payment"""
        if not actor.is_admin:
            raise UnauthorizedActorError("Only admins can reconcile bookings")
        booking = self._load_for_update(booking_id)
        if booking.status == BookingStatus.CONVERTED.value:
            self.db.commit()
            return booking, booking.order
        if booking.status != BookingStatus.PAID.value:
            self.db.rollback()
            raise InvalidTransitionError(
                f"Only paid bookings can be reconciled; this booking is {booking.status}",
                current_state=booking.status,
                attempted_action=BookingAction.CONVERT.value,
                allowed_actions=[a.value for a in booking_machine.allowed_actions(booking.status)],
            )
        logger.info(f"🔁 Reconciling booking {booking_id} (admin {actor.id})")
        return self._convert(booking)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: int, actor: Actor) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        is_customer = actor.role == ActorRole.CUSTOMER and booking.customer_id == actor.id
        is_tailor = actor.role == ActorRole.TAILOR and booking.tailor.user_id == actor.id
        if not (actor.is_admin or is_customer or is_tailor):
            raise UnauthorizedActorError("Not authorized to view this booking")
        return booking

    def list_customer_bookings(self, actor: Actor, status: Optional[str], page: int, limit: int):
        if actor.role != ActorRole.CUSTOMER:
            raise UnauthorizedActorError("Only customers have customer bookings")
        return self.repo.list_bookings(
            self.db, customer_id=actor.id, status=status, page=page, limit=limit
        )

    def list_tailor_bookings(self, actor: Actor, status: Optional[str], page: int, limit: int):
        tailor = self._own_tailor(actor)
        return self.repo.list_bookings(
            self.db, tailor_id=tailor.id, status=status, page=page, limit=limit
        )

    def get_tailor_stats(self, actor: Actor) -> dict:
        tailor = self._own_tailor(actor)
        schedule = self.availability.get_schedule(tailor.id)
        return {
            "stats": self.repo.count_by_status(self.db, tailor.id),
            "upcomingBookings": [
                booking_to_response(b)
                for b in self.repo.get_upcoming(self.db, tailor.id, tailor_today(schedule.timezone))
            ],
        }

    def get_admin_stats(self, actor: Actor) -> dict:
        if not actor.is_admin:
            raise UnauthorizedActorError("Only admins can view platform statistics")
        counts = self.repo.count_by_status(self.db)
        return {
            "stats": counts,
            "total": sum(counts.values()),
            "requiresReconciliation": len(self.repo.get_needing_reconciliation(self.db)),
        }

    def list_needing_reconciliation(self, actor: Actor) -> list[Booking]:
        if not actor.is_admin:
            raise UnauthorizedActorError("Only admins can view reconciliation")
        return self.repo.get_needing_reconciliation(self.db)

    def _own_tailor(self, actor: Actor):
        if actor.role != ActorRole.TAILOR:
            raise UnauthorizedActorError("Only tailors have tailor bookings")
        tailor = self.tailors.get_by_user_id(self.db, actor.id)
        if not tailor:
            raise NotFoundError("Tailor profile not found")
        return tailor


def list_response(bookings, total: int, page: int, limit: int) -> dict:
    return {
        "data": [booking_to_response(b) for b in bookings],
        "pagination": paginate(total, page, limit),
    }
