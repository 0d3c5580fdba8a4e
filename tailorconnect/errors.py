"""
Booking engine error taxonomy

Every rejected operation raises one of these. The API layer renders them
through a single exception handler so callers always receive the error kind
plus the state context needed for a user-facing message.
"""

from typing import Iterable, Optional


class BookingEngineError(Exception):
    """Base class for errors returned to the caller"""

    status_code = 400
    kind = "booking_engine_error"

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        attempted_action: Optional[str] = None,
        allowed_actions: Optional[Iterable[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.current_state = current_state
        self.attempted_action = attempted_action
        self.allowed_actions = list(allowed_actions) if allowed_actions is not None else None

    def to_dict(self) -> dict:
        body = {"detail": self.message, "error": self.kind}
        if self.current_state is not None:
            body["currentState"] = self.current_state
        if self.attempted_action is not None:
            body["attemptedAction"] = self.attempted_action
        if self.allowed_actions is not None:
            body["allowedActions"] = self.allowed_actions
        return body


class ValidationError(BookingEngineError):
    """Malformed schedule, negative quote amounts, inconsistent totals"""

    status_code = 400
    kind = "validation_error"


class InvalidTransitionError(BookingEngineError):
    status_code = 409
    kind = "invalid_transition"


class UnauthorizedActorError(BookingEngineError):
    status_code = 403
    kind = "unauthorized_actor"


class PreconditionError(BookingEngineError):
    """A required sub-resource is missing (no quote, no stages)"""

    status_code = 409
    kind = "precondition_failed"


class SlotUnavailableError(BookingEngineError):
    status_code = 409
    kind = "slot_unavailable"


class NotFoundError(BookingEngineError):
    status_code = 404
    kind = "not_found"


class ConversionFailedError(BookingEngineError):
    """Payment was recorded but the order could not be created; retry later"""

    status_code = 503
    kind = "conversion_failed"
