"""Tests for the booking state machine."""

import pytest

from tailorconnect import config
from tailorconnect.domain.bookings.state_machine import (
    TRANSITIONS,
    BookingAction,
    BookingStateMachine,
    booking_machine,
)
from tailorconnect.errors import InvalidTransitionError, UnauthorizedActorError
from tailorconnect.statuses import ActorRole, BookingStatus


@pytest.fixture
def machine():
    return BookingStateMachine()


class TestAllowedActions:
    def test_pending(self, machine):
        assert machine.allowed_actions(BookingStatus.PENDING) == [
            BookingAction.ACCEPT,
            BookingAction.DECLINE,
            BookingAction.CANCEL,
        ]

    @pytest.mark.parametrize(
        "status", [BookingStatus.CONVERTED, BookingStatus.CANCELLED, BookingStatus.DECLINED]
    )
    def test_terminal_states_have_no_actions(self, machine, status):
        assert status.is_terminal
        assert machine.allowed_actions(status) == []

    def test_every_transition_has_a_single_actor(self):
        seen = set()
        for t in TRANSITIONS:
            key = (t.from_state, t.action)
            assert key not in seen
            seen.add(key)


class TestHappyPath:
    def test_full_lifecycle(self, machine):
        steps = [
            (BookingAction.ACCEPT, ActorRole.TAILOR, BookingStatus.CONFIRMED),
            (BookingAction.COMPLETE_CONSULTATION, ActorRole.TAILOR, BookingStatus.CONSULTATION_DONE),
            (BookingAction.SUBMIT_QUOTE, ActorRole.TAILOR, BookingStatus.QUOTE_SUBMITTED),
            (BookingAction.ACCEPT_QUOTE, ActorRole.CUSTOMER, BookingStatus.QUOTE_ACCEPTED),
            (BookingAction.CONFIRM_PAYMENT, ActorRole.PAYMENT, BookingStatus.PAID),
            (BookingAction.CONVERT, ActorRole.SYSTEM, BookingStatus.CONVERTED),
        ]
        status = BookingStatus.PENDING
        for action, role, expected in steps:
            status = machine.transition(status, action, role)
            assert status == expected

    def test_reject_quote_cancels(self, machine):
        new = machine.transition(
            BookingStatus.QUOTE_SUBMITTED, BookingAction.REJECT_QUOTE, ActorRole.CUSTOMER
        )
        assert new == BookingStatus.CANCELLED

    def test_accepts_raw_status_strings(self, machine):
        assert machine.transition("pending", BookingAction.ACCEPT, ActorRole.TAILOR) == (
            BookingStatus.CONFIRMED
        )


class TestRejections:
    def test_payment_on_pending_lists_allowed_actions(self, machine):
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.transition(BookingStatus.PENDING, BookingAction.CONFIRM_PAYMENT, ActorRole.PAYMENT)
        error = exc_info.value
        assert error.current_state == "pending"
        assert error.attempted_action == "confirm_payment"
        assert error.allowed_actions == ["accept", "decline", "cancel"]

    def test_wrong_role_is_unauthorized(self, machine):
        with pytest.raises(UnauthorizedActorError):
            machine.transition(BookingStatus.PENDING, BookingAction.ACCEPT, ActorRole.CUSTOMER)

    def test_customer_cannot_cancel_after_quote(self, machine):
        with pytest.raises(InvalidTransitionError):
            machine.transition(
                BookingStatus.QUOTE_SUBMITTED, BookingAction.CANCEL, ActorRole.CUSTOMER
            )

    def test_nothing_leaves_a_terminal_state(self, machine):
        for action in BookingAction:
            with pytest.raises(InvalidTransitionError):
                machine.transition(BookingStatus.CONVERTED, action, ActorRole.ADMIN)

    def test_error_serializes_for_clients(self, machine):
        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.transition(BookingStatus.DECLINED, BookingAction.ACCEPT, ActorRole.TAILOR)
        body = exc_info.value.to_dict()
        assert body["error"] == "invalid_transition"
        assert body["currentState"] == "declined"
        assert body["allowedActions"] == []


class TestQuoteTiming:
    def test_quote_from_confirmed_allowed_by_default(self, monkeypatch):
        monkeypatch.setattr(config, "REQUIRE_CONSULTATION_BEFORE_QUOTE", False)
        new = booking_machine.transition(
            BookingStatus.CONFIRMED, BookingAction.SUBMIT_QUOTE, ActorRole.TAILOR
        )
        assert new == BookingStatus.QUOTE_SUBMITTED

    def test_consultation_required_when_configured(self, monkeypatch):
        monkeypatch.setattr(config, "REQUIRE_CONSULTATION_BEFORE_QUOTE", True)
        assert BookingAction.SUBMIT_QUOTE not in booking_machine.allowed_actions(
            BookingStatus.CONFIRMED
        )
        with pytest.raises(InvalidTransitionError):
            booking_machine.transition(
                BookingStatus.CONFIRMED, BookingAction.SUBMIT_QUOTE, ActorRole.TAILOR
            )
