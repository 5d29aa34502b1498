"""Domain errors raised by the scheduling services.

Each error carries the HTTP status the API layer answers with, so routes can
let them propagate and the exception handler in ``app.main`` renders them.
"""
from fastapi import status


class SchedulingError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    error: str = "scheduling_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(SchedulingError):
    """Malformed input; nothing was written and the caller can fix and retry."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error = "validation_error"


class NotFoundError(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class AuthorizationError(SchedulingError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"


class ConflictError(SchedulingError):
    """The provider's calendar already holds an overlapping appointment.

    Retryable: re-query available slots and pick another window.
    """

    status_code = status.HTTP_409_CONFLICT
    error = "conflict"


class StateError(SchedulingError):
    """The requested transition is not allowed from the appointment's current status."""

    status_code = status.HTTP_409_CONFLICT
    error = "invalid_state"
