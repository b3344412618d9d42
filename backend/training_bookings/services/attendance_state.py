"""Attendance state machine: the only code path that changes attendee status.

Legal moves for one (session, person) row:

    (none)                         -> INVITED | CONFIRMED | WAITLISTED
    INVITED | BOOKED | WAITLISTED  -> CONFIRMED
    INVITED | BOOKED               -> WAITLISTED   (claim degraded, no general seat)
    INVITED | BOOKED | WAITLISTED
            | CONFIRMED            -> CANCELLED

CANCELLED, ATTENDED and NO_SHOW are terminal. Coming back after CANCELLED is
a new logical booking that overwrites the row (``reopen``), not a transition.

Each status change stamps the timestamp that belongs to the new status, once.
Timestamps are never cleared.
"""
import logging
from datetime import datetime
from typing import Optional

from training_bookings.exceptions import InvalidTransition
from training_bookings.models.attendee import SessionAttendee, AttendeeStatus, AttendeeSource
from training_bookings.timeutils import as_utc

logger = logging.getLogger(__name__)

PENDING_STATUSES = frozenset({AttendeeStatus.INVITED, AttendeeStatus.BOOKED, AttendeeStatus.WAITLISTED})
ACTIVE_STATUSES = PENDING_STATUSES | {AttendeeStatus.CONFIRMED}
TERMINAL_STATUSES = frozenset({AttendeeStatus.CANCELLED, AttendeeStatus.ATTENDED, AttendeeStatus.NO_SHOW})

INITIAL_STATUSES = frozenset({AttendeeStatus.INVITED, AttendeeStatus.CONFIRMED, AttendeeStatus.WAITLISTED})

TRANSITIONS: dict[AttendeeStatus, frozenset[AttendeeStatus]] = {
    AttendeeStatus.INVITED: frozenset({AttendeeStatus.CONFIRMED, AttendeeStatus.WAITLISTED, AttendeeStatus.CANCELLED}),
    AttendeeStatus.BOOKED: frozenset({AttendeeStatus.CONFIRMED, AttendeeStatus.WAITLISTED, AttendeeStatus.CANCELLED}),
    AttendeeStatus.WAITLISTED: frozenset({AttendeeStatus.CONFIRMED, AttendeeStatus.CANCELLED}),
    AttendeeStatus.CONFIRMED: frozenset({AttendeeStatus.CANCELLED}),
}

TIMESTAMP_FIELDS: dict[AttendeeStatus, str] = {
    AttendeeStatus.INVITED: "invited_at",
    AttendeeStatus.BOOKED: "booked_at",
    AttendeeStatus.WAITLISTED: "booked_at",
    AttendeeStatus.CONFIRMED: "confirmed_at",
    AttendeeStatus.CANCELLED: "cancelled_at",
    AttendeeStatus.ATTENDED: "attended_at",
}


def can_transition(current: AttendeeStatus, target: AttendeeStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(current: AttendeeStatus, target: AttendeeStatus) -> None:
    """Raise InvalidTransition unless ``current -> target`` is a legal move."""
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move attendance from {current.value} to {target.value}",
            details={"from_status": current.value, "to_status": target.value},
        )


def _stamp(attendee: SessionAttendee, status: AttendeeStatus, now: datetime, advance: bool = False) -> None:
    field = TIMESTAMP_FIELDS.get(status)
    if field is None:
        return
    current = getattr(attendee, field)
    if current is None:
        setattr(attendee, field, now)
    elif advance and as_utc(current) < as_utc(now):
        setattr(attendee, field, now)


def create(
    session_id: str,
    user_id: str,
    status: AttendeeStatus,
    source: AttendeeSource,
    now: datetime,
) -> SessionAttendee:
    """Build a brand-new attendee row in one of the initial statuses."""
    if status not in INITIAL_STATUSES:
        raise InvalidTransition(
            f"An attendance cannot start as {status.value}",
            details={"from_status": None, "to_status": status.value},
        )
    attendee = SessionAttendee(session_id=session_id, user_id=user_id, status=status, source=source)
    _stamp(attendee, status, now)
    return attendee


def transition(attendee: SessionAttendee, target: AttendeeStatus, now: datetime) -> AttendeeStatus:
    """Apply a legal status change in place; returns the previous status."""
    previous = attendee.status
    check_transition(previous, target)
    attendee.status = target
    _stamp(attendee, target, now)
    logger.debug("Attendee %s/%s %s -> %s", attendee.session_id, attendee.user_id, previous.value, target.value)
    return previous


def reopen(
    attendee: SessionAttendee,
    status: AttendeeStatus,
    source: Optional[AttendeeSource],
    now: datetime,
) -> AttendeeStatus:
    """Overwrite an existing row with a new logical booking.

    Used for re-entry after CANCELLED and for re-invites. The timestamp of the
    new status moves forward to ``now``; no timestamp is cleared.
    """
    if status not in INITIAL_STATUSES:
        raise InvalidTransition(
            f"A booking cannot be reopened as {status.value}",
            details={"from_status": attendee.status.value, "to_status": status.value},
        )
    if attendee.status in (AttendeeStatus.ATTENDED, AttendeeStatus.NO_SHOW):
        raise InvalidTransition(
            f"Attendance already recorded as {attendee.status.value}",
            details={"from_status": attendee.status.value, "to_status": status.value},
        )
    previous = attendee.status
    attendee.status = status
    if source is not None:
        attendee.source = source
    _stamp(attendee, status, now, advance=True)
    return previous


def tag_source(attendee: SessionAttendee, source: AttendeeSource) -> None:
    """Reclassify why the row exists without touching its status."""
    if attendee.source != source:
        logger.debug("Attendee %s/%s source %s -> %s", attendee.session_id, attendee.user_id, attendee.source, source)
        attendee.source = source
