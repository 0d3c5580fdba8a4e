"""Tests for payment confirmation and booking-to-order conversion."""

import pytest
from sqlalchemy.exc import OperationalError

from tailorconnect.domain.bookings import service as booking_service_module
from tailorconnect.errors import ConversionFailedError, UnauthorizedActorError
from tailorconnect.models import Booking, Order
from tailorconnect.statuses import BookingStatus, OrderStatus

from tests.conftest import ADMIN, CUSTOMER


def _failing_conversion(db, booking, actor_id=None):
    raise OperationalError("INSERT INTO orders", {}, Exception("database unavailable"))


class TestConfirmPayment:
    def test_converts_into_order(self, db, booking_service, accepted_quote_booking, notifier):
        booking, order = booking_service.confirm_payment(accepted_quote_booking.id)
        assert booking.status == BookingStatus.CONVERTED.value
        assert order.status == OrderStatus.AWAITING_PLAN.value
        assert order.booking_id == booking.id
        assert order.customer_id == CUSTOMER.id
        assert [c.to_status for c in booking.status_history][-2:] == ["paid", "converted"]
        assert notifier.names[-2:] == ["booking.confirm_payment", "booking.convert"]

    def test_repeated_confirmation_returns_same_order(self, db, booking_service, accepted_quote_booking):
        _, first = booking_service.confirm_payment(accepted_quote_booking.id)
        _, second = booking_service.confirm_payment(accepted_quote_booking.id)
        assert first.id == second.id
        assert db.query(Order).count() == 1


class TestConversionFailure:
    def test_failure_records_payment_and_flags_booking(
        self, db, booking_service, accepted_quote_booking, monkeypatch
    ):
        monkeypatch.setattr(booking_service_module, "convert_booking_to_order", _failing_conversion)
        with pytest.raises(ConversionFailedError) as exc_info:
            booking_service.confirm_payment(accepted_quote_booking.id)
        assert exc_info.value.status_code == 503

        db.expire_all()
        booking = db.get(Booking, accepted_quote_booking.id)
        assert booking.status == BookingStatus.PAID.value
        assert booking.requires_reconciliation is True
        assert db.query(Order).count() == 0

    def test_failure_publishes_event(
        self, booking_service, accepted_quote_booking, notifier, monkeypatch
    ):
        monkeypatch.setattr(booking_service_module, "convert_booking_to_order", _failing_conversion)
        with pytest.raises(ConversionFailedError):
            booking_service.confirm_payment(accepted_quote_booking.id)
        assert notifier.names[-1] == "booking.conversion_failed"

    def test_retry_after_failure_converts(
        self, db, booking_service, accepted_quote_booking, monkeypatch
    ):
        monkeypatch.setattr(booking_service_module, "convert_booking_to_order", _failing_conversion)
        with pytest.raises(ConversionFailedError):
            booking_service.confirm_payment(accepted_quote_booking.id)
        monkeypatch.undo()

        booking, order = booking_service.confirm_payment(accepted_quote_booking.id)
        assert booking.status == BookingStatus.CONVERTED.value
        assert booking.requires_reconciliation is False
        assert db.query(Order).count() == 1
        assert order.booking_id == booking.id

    def test_listed_for_reconciliation(self, booking_service, accepted_quote_booking, monkeypatch):
        monkeypatch.setattr(booking_service_module, "convert_booking_to_order", _failing_conversion)
        with pytest.raises(ConversionFailedError):
            booking_service.confirm_payment(accepted_quote_booking.id)

        pending = booking_service.list_needing_reconciliation(ADMIN)
        assert [b.id for b in pending] == [accepted_quote_booking.id]
        assert booking_service.get_admin_stats(ADMIN)["requiresReconciliation"] == 1


class TestReconcile:
    def test_admin_reconciles(self, booking_service, accepted_quote_booking, monkeypatch):
        monkeypatch.setattr(booking_service_module, "convert_booking_to_order", _failing_conversion)
        with pytest.raises(ConversionFailedError):
            booking_service.confirm_payment(accepted_quote_booking.id)
        monkeypatch.undo()

        booking, order = booking_service.reconcile(accepted_quote_booking.id, ADMIN)
        assert booking.status == BookingStatus.CONVERTED.value
        assert order.status == OrderStatus.AWAITING_PLAN.value
        assert booking_service.list_needing_reconciliation(ADMIN) == []

    def test_only_admin_reconciles(self, booking_service, accepted_quote_booking):
        with pytest.raises(UnauthorizedActorError):
            booking_service.reconcile(accepted_quote_booking.id, CUSTOMER)

    def test_reconcile_is_idempotent_after_conversion(self, booking_service, accepted_quote_booking):
        _, order = booking_service.confirm_payment(accepted_quote_booking.id)
        _, again = booking_service.reconcile(accepted_quote_booking.id, ADMIN)
        assert again.id == order.id
