"""Shared test fixtures and helpers."""

import os
import tempfile
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

# The application engine is built at import time; point it somewhere harmless
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="tailorconnect-"), "app.db"
)
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from tailorconnect.auth import Actor  # noqa: E402
from tailorconnect.database import Base, build_engine  # noqa: E402
from tailorconnect.domain.availability.schedule import (  # noqa: E402
    DaySchedule,
    TimeWindow,
    WeeklySchedule,
)
from tailorconnect.domain.availability.service import AvailabilityService  # noqa: E402
from tailorconnect.domain.bookings.schemas import BookingCreate  # noqa: E402
from tailorconnect.domain.bookings.service import BookingService  # noqa: E402
from tailorconnect.domain.orders.service import OrderService  # noqa: E402
from tailorconnect.domain.quotes.schemas import QuoteSubmission  # noqa: E402
from tailorconnect.models import TailorProfile  # noqa: E402
from tailorconnect.statuses import ActorRole  # noqa: E402

CUSTOMER = Actor(id="customer-1", role=ActorRole.CUSTOMER)
OTHER_CUSTOMER = Actor(id="customer-2", role=ActorRole.CUSTOMER)
TAILOR = Actor(id="tailor-1", role=ActorRole.TAILOR)
OTHER_TAILOR = Actor(id="tailor-2", role=ActorRole.TAILOR)
ADMIN = Actor(id="admin-1", role=ActorRole.ADMIN)


class RecordingNotifier:
    """Collects published events instead of delivering them."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def next_monday(after: Optional[date] = None) -> date:
    """The first Monday strictly after ``after`` (default: today in UTC)."""
    after = after or datetime.now(timezone.utc).date()
    return after + timedelta(days=(7 - after.weekday()) or 7)


def monday_schedule(
    start: int = 9 * 60,
    end: int = 12 * 60,
    duration: int = 60,
    buffer: int = 0,
    **settings,
) -> WeeklySchedule:
    """Open Mondays only, one window."""
    days = [DaySchedule() for _ in range(7)]
    days[0] = DaySchedule(is_open=True, windows=(TimeWindow(start, end),))
    return WeeklySchedule(
        days=tuple(days), slot_duration_minutes=duration, buffer_minutes=buffer, **settings
    )


def booking_request(
    day: date, start: str = "10:00", end: str = "11:00", username: str = "ada"
) -> BookingCreate:
    return BookingCreate(
        tailorUsername=username,
        date=day.isoformat(),
        startTime=start,
        endTime=end,
        service="Wedding suit consultation",
    )


def quote_submission(**overrides) -> QuoteSubmission:
    data = {
        "items": [{"description": "Wool fabric", "quantity": 2, "unitPrice": 10}],
        "laborCost": 5,
        "materialCost": 0,
        "estimatedDays": {"design": 2, "sew": 5, "deliver": 1},
    }
    data.update(overrides)
    return QuoteSubmission(**data)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def tailor(db):
    """Tailor 'ada' open Mondays 09:00-12:00 with 60 minute slots and no buffer."""
    profile = TailorProfile(user_id=TAILOR.id, username="ada", business_name="Ada Tailoring")
    db.add(profile)
    db.commit()
    AvailabilityService(db).set_schedule(profile.id, monday_schedule())
    return profile


@pytest.fixture
def other_tailor(db):
    profile = TailorProfile(user_id=OTHER_TAILOR.id, username="grace")
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def booking_service(db, notifier):
    return BookingService(db, notifier)


@pytest.fixture
def order_service(db, notifier):
    return OrderService(db, notifier)


@pytest.fixture
def monday():
    return next_monday()


@pytest.fixture
def pending_booking(booking_service, tailor, monday):
    return booking_service.create_booking(CUSTOMER, booking_request(monday))


@pytest.fixture
def accepted_quote_booking(booking_service, pending_booking):
    """A booking walked through to quote_accepted."""
    booking_service.accept(pending_booking.id, TAILOR)
    booking_service.complete_consultation(pending_booking.id, TAILOR)
    booking_service.submit_quote(pending_booking.id, TAILOR, quote_submission())
    return booking_service.accept_quote(pending_booking.id, CUSTOMER)


@pytest.fixture
def order(booking_service, accepted_quote_booking):
    """A freshly converted order, awaiting its work plan."""
    _, order = booking_service.confirm_payment(accepted_quote_booking.id)
    return order
