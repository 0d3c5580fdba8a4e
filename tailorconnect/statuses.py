"""Status vocabularies shared by the API, the services and the clients"""

from enum import Enum


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    TAILOR = "tailor"
    ADMIN = "admin"
    # Collaborators that act on behalf of the platform
    PAYMENT = "payment"
    SYSTEM = "system"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CONSULTATION_DONE = "consultation_done"
    QUOTE_SUBMITTED = "quote_submitted"
    QUOTE_ACCEPTED = "quote_accepted"
    PAID = "paid"
    CONVERTED = "converted"
    CANCELLED = "cancelled"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        return self in BOOKING_TERMINAL_STATUSES

    @property
    def holds_slot(self) -> bool:
        """Terminal bookings free their time range for new bookings"""
        return self not in (BookingStatus.CANCELLED, BookingStatus.DECLINED)

    @property
    def label(self) -> str:
        return BOOKING_LABELS[self]


BOOKING_TERMINAL_STATUSES = frozenset(
    {BookingStatus.CONVERTED, BookingStatus.CANCELLED, BookingStatus.DECLINED}
)

# Bookings in these states block overlapping bookings for the same tailor
SLOT_HOLDING_STATUSES = tuple(s for s in BookingStatus if s.holds_slot)

BOOKING_LABELS = {
    BookingStatus.PENDING: "Pending",
    BookingStatus.CONFIRMED: "Confirmed",
    BookingStatus.CONSULTATION_DONE: "Consultation Done",
    BookingStatus.QUOTE_SUBMITTED: "Quote Submitted",
    BookingStatus.QUOTE_ACCEPTED: "Quote Accepted",
    BookingStatus.PAID: "Paid",
    BookingStatus.CONVERTED: "Converted to Order",
    BookingStatus.CANCELLED: "Cancelled",
    BookingStatus.DECLINED: "Declined",
}


class QuoteStatus(str, Enum):
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class OrderStatus(str, Enum):
    AWAITING_PLAN = "awaiting_plan"
    PLAN_REVIEW = "plan_review"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

    @property
    def label(self) -> str:
        return ORDER_LABELS[self]


ORDER_LABELS = {
    OrderStatus.AWAITING_PLAN: "Awaiting Work Plan",
    OrderStatus.PLAN_REVIEW: "Plan Under Review",
    OrderStatus.IN_PROGRESS: "In Progress",
    OrderStatus.READY: "Ready",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.CANCELLED: "Cancelled",
}


class StageStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class DelayStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
