"""
Booking lifecycle state machine

Every legal move is one row in TRANSITIONS: from-state, action, to-state and
the role allowed to trigger it. Anything not in the table is rejected with
the current state and the actions that are allowed from it.

Usage:
    new_status = booking_machine.transition(
        BookingStatus.PENDING, BookingAction.ACCEPT, ActorRole.TAILOR
    )
    assert new_status == BookingStatus.CONFIRMED
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ... import config
from ...errors import InvalidTransitionError, UnauthorizedActorError
from ...statuses import ActorRole, BookingStatus

logger = logging.getLogger(__name__)


class BookingAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    CANCEL = "cancel"
    COMPLETE_CONSULTATION = "complete_consultation"
    SUBMIT_QUOTE = "submit_quote"
    ACCEPT_QUOTE = "accept_quote"
    REJECT_QUOTE = "reject_quote"
    CONFIRM_PAYMENT = "confirm_payment"
    CONVERT = "convert"


@dataclass(frozen=True)
class Transition:
    from_state: BookingStatus
    action: BookingAction
    to_state: BookingStatus
    actor: ActorRole
    guard: Optional[Callable[[], bool]] = None


def _quote_without_consultation_allowed() -> bool:
    return not config.REQUIRE_CONSULTATION_BEFORE_QUOTE


TRANSITIONS: list[Transition] = [
    Transition(BookingStatus.PENDING, BookingAction.ACCEPT,
               BookingStatus.CONFIRMED, ActorRole.TAILOR),
    Transition(BookingStatus.PENDING, BookingAction.DECLINE,
               BookingStatus.DECLINED, ActorRole.TAILOR),
    Transition(BookingStatus.PENDING, BookingAction.CANCEL,
               BookingStatus.CANCELLED, ActorRole.CUSTOMER),
    Transition(BookingStatus.CONFIRMED, BookingAction.CANCEL,
               BookingStatus.CANCELLED, ActorRole.CUSTOMER),
    Transition(BookingStatus.CONFIRMED, BookingAction.COMPLETE_CONSULTATION,
               BookingStatus.CONSULTATION_DONE, ActorRole.TAILOR),
    Transition(BookingStatus.CONFIRMED, BookingAction.SUBMIT_QUOTE,
               BookingStatus.QUOTE_SUBMITTED, ActorRole.TAILOR,
               guard=_quote_without_consultation_allowed),
    Transition(BookingStatus.CONSULTATION_DONE, BookingAction.SUBMIT_QUOTE,
               BookingStatus.QUOTE_SUBMITTED, ActorRole.TAILOR),
    Transition(BookingStatus.QUOTE_SUBMITTED, BookingAction.ACCEPT_QUOTE,
               BookingStatus.QUOTE_ACCEPTED, ActorRole.CUSTOMER),
    Transition(BookingStatus.QUOTE_SUBMITTED, BookingAction.REJECT_QUOTE,
               BookingStatus.CANCELLED, ActorRole.CUSTOMER),
    Transition(BookingStatus.QUOTE_ACCEPTED, BookingAction.CONFIRM_PAYMENT,
               BookingStatus.PAID, ActorRole.PAYMENT),
    Transition(BookingStatus.PAID, BookingAction.CONVERT,
               BookingStatus.CONVERTED, ActorRole.SYSTEM),
]


class BookingStateMachine:
    """Validates booking transitions against the table"""

    def __init__(self, transitions: Optional[list[Transition]] = None):
        self.transitions = transitions if transitions is not None else TRANSITIONS

    def _enabled(self, status: BookingStatus) -> list[Transition]:
        return [
            t
            for t in self.transitions
            if t.from_state == status and (t.guard is None or t.guard())
        ]

    def allowed_actions(self, status: BookingStatus) -> list[BookingAction]:
        """Actions that can be taken from ``status``, in table order"""
        return [t.action for t in self._enabled(status)]

    def transition(
        self, status: BookingStatus, action: BookingAction, role: ActorRole
    ) -> BookingStatus:
        """
        Resolve the target state of ``action`` taken by ``role`` from ``status``.

        Raises:
            InvalidTransitionError: No such transition from ``status``
            UnauthorizedActorError: The transition exists but belongs to another role
        """
        status = BookingStatus(status)
        for t in self._enabled(status):
            if t.action != action:
                continue
            if t.actor != role:
                raise UnauthorizedActorError(
                    f"Only the {t.actor.value} can {action.value.replace('_', ' ')} a booking",
                    current_state=status.value,
                    attempted_action=action.value,
                )
            return t.to_state

        allowed = [a.value for a in self.allowed_actions(status)]
        logger.warning(
            f"⚠️ Rejected booking transition: {status.value} --{action.value}--> (allowed: {allowed})"
        )
        raise InvalidTransitionError(
            f"Cannot {action.value.replace('_', ' ')} a booking that is {status.value}. "
            f"Allowed actions: {', '.join(allowed) if allowed else 'none'}",
            current_state=status.value,
            attempted_action=action.value,
            allowed_actions=allowed,
        )


booking_machine = BookingStateMachine()
