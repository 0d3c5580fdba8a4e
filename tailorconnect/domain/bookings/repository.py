"""Booking repository - Database operations for bookings"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import Booking, BookingStatusChange, Quote
from ...statuses import BookingStatus, SLOT_HOLDING_STATUSES


def _with_details(query):
    return query.options(
        selectinload(Booking.tailor),
        selectinload(Booking.quote).selectinload(Quote.items),
        selectinload(Booking.order),
        selectinload(Booking.status_history),
    )


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return _with_details(db.query(Booking)).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_booking_for_update(db: Session, booking_id: int) -> Optional[Booking]:
        """Load a booking with a row lock for a state transition"""
        return (
            db.query(Booking)
            .filter(Booking.id == booking_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def find_overlapping(
        db: Session, tailor_id: int, day: date, start: int, end: int
    ) -> list[Booking]:
        """Slot-holding bookings whose [start, end) intersects the given range"""
        return (
            db.query(Booking)
            .filter(
                Booking.tailor_id == tailor_id,
                Booking.date == day,
                Booking.status.in_([s.value for s in SLOT_HOLDING_STATUSES]),
                Booking.start_minute < end,
                Booking.end_minute > start,
            )
            .all()
        )

    @staticmethod
    def add_status_change(
        db: Session,
        booking: Booking,
        from_status: Optional[str],
        to_status: str,
        action: str,
        actor_id: Optional[str],
        note: Optional[str] = None,
    ) -> BookingStatusChange:
        change = BookingStatusChange(
            from_status=from_status,
            to_status=to_status,
            action=action,
            actor_id=actor_id,
            note=note,
        )
        booking.status_history.append(change)
        return change

    @staticmethod
    def list_bookings(
        db: Session,
        customer_id: Optional[str] = None,
        tailor_id: Optional[int] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int]:
        """Paginated bookings for a customer or a tailor, newest date first"""
        query = db.query(Booking)
        if customer_id is not None:
            query = query.filter(Booking.customer_id == customer_id)
        if tailor_id is not None:
            query = query.filter(Booking.tailor_id == tailor_id)
        if status:
            query = query.filter(Booking.status == status)

        total = query.count()
        bookings = (
            _with_details(query)
            .order_by(Booking.date.desc(), Booking.start_minute.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return bookings, total

    @staticmethod
    def count_by_status(db: Session, tailor_id: Optional[int] = None) -> dict[str, int]:
        query = db.query(Booking.status, func.count(Booking.id))
        if tailor_id is not None:
            query = query.filter(Booking.tailor_id == tailor_id)
        counts = {s.value: 0 for s in BookingStatus}
        for status, count in query.group_by(Booking.status).all():
            counts[status] = count
        return counts

    @staticmethod
    def get_upcoming(db: Session, tailor_id: int, today: date, limit: int = 5) -> list[Booking]:
        return (
            _with_details(db.query(Booking))
            .filter(
                Booking.tailor_id == tailor_id,
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.date >= today,
            )
            .order_by(Booking.date.asc(), Booking.start_minute.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_needing_reconciliation(db: Session) -> list[Booking]:
        return (
            _with_details(db.query(Booking))
            .filter(Booking.requires_reconciliation.is_(True))
            .order_by(Booking.updated_at.asc())
            .all()
        )
