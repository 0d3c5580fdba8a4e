from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .statuses import BookingStatus, DelayStatus, OrderStatus, QuoteStatus, StageStatus


class TailorProfile(Base):
    __tablename__ = "tailor_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), unique=True, index=True, nullable=False)  # identity subject
    username = Column(String(30), unique=True, index=True, nullable=False)
    business_name = Column(String(255), nullable=True)
    accepting_bookings = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    availability = relationship(
        "TailorAvailability", back_populates="tailor", uselist=False, cascade="all, delete-orphan"
    )


class TailorAvailability(Base):
    __tablename__ = "tailor_availability"

    id = Column(Integer, primary_key=True, index=True)
    tailor_id = Column(Integer, ForeignKey("tailor_profiles.id"), unique=True, nullable=False)
    # Seven entries, index 0 = Monday: {"isOpen": bool, "windows": [{"start": 540, "end": 720}]}
    schedule = Column(JSON, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False, default=60)
    buffer_minutes = Column(Integer, nullable=False, default=15)
    advance_booking_days = Column(Integer, nullable=False, default=30)
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tailor = relationship("TailorProfile", back_populates="availability")
    exceptions = relationship(
        "AvailabilityException",
        back_populates="availability",
        cascade="all, delete-orphan",
        order_by="AvailabilityException.date",
    )


class AvailabilityException(Base):
    """Per-date override of the weekly template (holidays, extra hours)"""

    __tablename__ = "availability_exceptions"

    id = Column(Integer, primary_key=True, index=True)
    availability_id = Column(Integer, ForeignKey("tailor_availability.id"), nullable=False)
    date = Column(Date, nullable=False)
    is_available = Column(Boolean, default=False, nullable=False)
    windows = Column(JSON, nullable=False, default=list)
    reason = Column(String(255), nullable=True)

    availability = relationship("TailorAvailability", back_populates="exceptions")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    tailor_id = Column(Integer, ForeignKey("tailor_profiles.id"), nullable=False, index=True)
    customer_id = Column(String(128), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)
    service = Column(String(200), nullable=False)
    notes = Column(String(1000), nullable=True)
    measurement_profile_id = Column(String(128), nullable=True)  # owned by the customer
    status = Column(String(50), default=BookingStatus.PENDING.value, nullable=False, index=True)
    decline_reason = Column(String(500), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    # Set when payment was confirmed but the order could not be created
    requires_reconciliation = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tailor = relationship("TailorProfile")
    quote = relationship(
        "Quote", back_populates="booking", uselist=False, cascade="all, delete-orphan"
    )
    order = relationship("Order", back_populates="booking", uselist=False)
    status_history = relationship(
        "BookingStatusChange",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingStatusChange.id",
    )


class BookingStatusChange(Base):
    __tablename__ = "booking_status_changes"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)
    actor_id = Column(String(128), nullable=True)
    note = Column(String(500), nullable=True)
    changed_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="status_history")


class Quote(Base):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    labor_cost = Column(Float, nullable=False, default=0.0)
    material_cost = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    design_days = Column(Integer, nullable=False)
    sew_days = Column(Integer, nullable=False)
    deliver_days = Column(Integer, nullable=False)
    notes = Column(String(1000), nullable=True)
    status = Column(String(20), default=QuoteStatus.SUBMITTED.value, nullable=False)
    rejection_reason = Column(String(500), nullable=True)
    submitted_at = Column(DateTime, server_default=func.now())
    responded_at = Column(DateTime, nullable=True)

    booking = relationship("Booking", back_populates="quote")
    items = relationship(
        "QuoteItem", back_populates="quote", cascade="all, delete-orphan", order_by="QuoteItem.id"
    )


class QuoteItem(Base):
    __tablename__ = "quote_items"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False)
    description = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)

    quote = relationship("Quote", back_populates="items")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    tailor_id = Column(Integer, ForeignKey("tailor_profiles.id"), nullable=False, index=True)
    customer_id = Column(String(128), nullable=False, index=True)
    service_type = Column(String(200), nullable=False)
    status = Column(String(50), default=OrderStatus.AWAITING_PLAN.value, nullable=False, index=True)

    # Work plan
    plan_deadline = Column(DateTime, nullable=False)
    plan_submitted_at = Column(DateTime, nullable=True)
    plan_approved_at = Column(DateTime, nullable=True)
    plan_rejected_at = Column(DateTime, nullable=True)
    plan_rejection_reason = Column(String(500), nullable=True)
    revision_history = Column(JSON, nullable=False, default=list)
    estimated_completion_date = Column(Date, nullable=True)
    # Quote estimates offered as the default Design / Sew / Deliver plan
    suggested_design_days = Column(Integer, nullable=True)
    suggested_sew_days = Column(Integer, nullable=True)
    suggested_deliver_days = Column(Integer, nullable=True)

    # Completion
    work_started_at = Column(DateTime, nullable=True)
    work_completed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completion_rating = Column(Integer, nullable=True)  # 1-5
    completion_comment = Column(Text, nullable=True)
    feedback_submitted_at = Column(DateTime, nullable=True)

    # Cancellation
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(128), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="order")
    tailor = relationship("TailorProfile")
    stages = relationship(
        "WorkPlanStage",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="WorkPlanStage.position",
    )
    delay_requests = relationship(
        "DelayRequest",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="DelayRequest.position",
    )
    status_history = relationship(
        "OrderStatusChange",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusChange.id",
    )


class WorkPlanStage(Base):
    __tablename__ = "work_plan_stages"
    __table_args__ = (UniqueConstraint("order_id", "position", name="uq_stage_position"),)

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # 0-based
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    estimated_days = Column(Integer, nullable=False)
    status = Column(String(20), default=StageStatus.PENDING.value, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="stages")
    notes = relationship(
        "StageNote", back_populates="stage", cascade="all, delete-orphan", order_by="StageNote.id"
    )


class StageNote(Base):
    __tablename__ = "stage_notes"

    id = Column(Integer, primary_key=True, index=True)
    stage_id = Column(Integer, ForeignKey("work_plan_stages.id"), nullable=False, index=True)
    text = Column(String(500), nullable=False)
    added_by = Column(String(128), nullable=False)
    added_at = Column(DateTime, server_default=func.now())

    stage = relationship("WorkPlanStage", back_populates="notes")


class DelayRequest(Base):
    __tablename__ = "delay_requests"
    __table_args__ = (UniqueConstraint("order_id", "position", name="uq_delay_position"),)

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # 0-based, append-only
    reason = Column(String(500), nullable=False)
    additional_days = Column(Integer, nullable=False)
    status = Column(String(20), default=DelayStatus.PENDING.value, nullable=False)
    requested_by = Column(String(128), nullable=False)
    requested_at = Column(DateTime, server_default=func.now())
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(String(500), nullable=True)

    order = relationship("Order", back_populates="delay_requests")


class OrderStatusChange(Base):
    __tablename__ = "order_status_changes"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=False)
    actor_id = Column(String(128), nullable=True)
    note = Column(String(500), nullable=True)
    changed_at = Column(DateTime, server_default=func.now())

    order = relationship("Order", back_populates="status_history")
