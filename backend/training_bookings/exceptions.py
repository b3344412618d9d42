"""Reservation error taxonomy.

Every failure the reservation engine reports to a caller is one of these
types. ``category`` lets clients tell capacity/deadline failures (choose
another session, join the waitlist) apart from permission failures
(contact an admin).
"""
from typing import Optional


class ReservationError(Exception):
    """Base class for all errors surfaced by the reservation engine."""

    status_code = 400
    error_code = "RESERVATION_ERROR"
    category = "state"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class SessionFull(ReservationError):
    status_code = 409
    error_code = "SESSION_FULL"
    category = "capacity"


class ConfirmDeadlinePassed(ReservationError):
    status_code = 409
    error_code = "CONFIRM_DEADLINE_PASSED"
    category = "deadline"


class InvalidTransition(ReservationError):
    status_code = 409
    error_code = "INVALID_TRANSITION"
    category = "state"


class NotPermitted(ReservationError):
    status_code = 403
    error_code = "NOT_PERMITTED"
    category = "permission"


class NotFound(ReservationError):
    status_code = 404
    error_code = "NOT_FOUND"
    category = "not_found"


class ConcurrencyConflict(ReservationError):
    """Optimistic retries were exhausted; the caller may simply try again."""

    status_code = 409
    error_code = "CONFLICT"
    category = "conflict"
    retry_after = 1

    def __init__(self, message: str = "Conflict, please retry", details: Optional[dict] = None):
        super().__init__(message, details)
