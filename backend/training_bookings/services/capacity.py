"""Capacity allocator: seat arithmetic over one session's attendee rows.

Two kinds of seat share a session's capacity:

* reserved seats, held by rows with ``source=PRIORITY`` while they are
  INVITED, BOOKED or CONFIRMED (an invite holds the seat before the person
  acts);
* general seats, consumed by CONFIRMED rows from any other source.

WAITLISTED and CANCELLED rows hold nothing. Every authorization decision
below is taken against a freshly loaded snapshot inside the reservation
unit of work; nothing here touches the database.
"""
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional, Protocol

from training_bookings.exceptions import SessionFull
from training_bookings.models.attendee import AttendeeStatus, AttendeeSource

HOLDING_STATUSES = frozenset({AttendeeStatus.INVITED, AttendeeStatus.BOOKED, AttendeeStatus.CONFIRMED})


class SeatRow(Protocol):
    status: AttendeeStatus
    source: AttendeeSource


class SeatClaim(NamedTuple):
    """A projected (status, source) pair used to evaluate a batch before writing it."""

    status: AttendeeStatus
    source: AttendeeSource


@dataclass(frozen=True)
class CapacityStats:
    capacity: int
    priority_holds: int
    confirmed_non_priority: int

    @property
    def used(self) -> int:
        return self.priority_holds + self.confirmed_non_priority

    @property
    def general_remaining(self) -> int:
        return max(0, self.capacity - self.priority_holds - self.confirmed_non_priority)

    @property
    def is_full(self) -> bool:
        return self.used >= self.capacity

    def as_dict(self) -> dict:
        return {
            "capacity": self.capacity,
            "priority_holds": self.priority_holds,
            "confirmed_non_priority": self.confirmed_non_priority,
            "general_remaining": self.general_remaining,
            "used": self.used,
            "is_full": self.is_full,
        }


def holds_reserved_seat(row: Optional[SeatRow]) -> bool:
    return row is not None and row.source == AttendeeSource.PRIORITY and row.status in HOLDING_STATUSES


def compute_stats(capacity: int, rows: Iterable[SeatRow]) -> CapacityStats:
    priority_holds = 0
    confirmed_non_priority = 0
    for row in rows:
        if holds_reserved_seat(row):
            priority_holds += 1
        elif row.status == AttendeeStatus.CONFIRMED and row.source != AttendeeSource.PRIORITY:
            confirmed_non_priority += 1
    return CapacityStats(
        capacity=capacity,
        priority_holds=priority_holds,
        confirmed_non_priority=confirmed_non_priority,
    )


def _full(stats: CapacityStats, message: str) -> SessionFull:
    return SessionFull(message, details={"stats": stats.as_dict()})


def decide_claim(stats: CapacityStats, existing: Optional[SeatRow]) -> AttendeeStatus:
    """Self-claim never fails on capacity: it lands CONFIRMED or WAITLISTED."""
    if holds_reserved_seat(existing):
        return AttendeeStatus.CONFIRMED
    if stats.general_remaining > 0:
        return AttendeeStatus.CONFIRMED
    return AttendeeStatus.WAITLISTED


def authorize_confirm(stats: CapacityStats, existing: SeatRow) -> None:
    if holds_reserved_seat(existing):
        return
    if stats.general_remaining <= 0:
        raise _full(stats, "No general places remain on this session")


def authorize_force_place(stats: CapacityStats, existing: Optional[SeatRow]) -> None:
    if stats.is_full:
        raise _full(stats, "Session is full, cannot force place")
    if holds_reserved_seat(existing):
        return
    if stats.general_remaining <= 0:
        raise _full(stats, "This session is at general capacity. Only reserved priority places remain.")


def authorize_invite(stats: CapacityStats) -> None:
    if stats.is_full:
        raise _full(stats, "Session is full, no more invites can be sent")


def authorize_invite_batch(capacity: int, projected: Iterable[SeatRow]) -> CapacityStats:
    """Check the whole batch at once: the projected row set must fit."""
    after = compute_stats(capacity, projected)
    if after.used > capacity:
        raise SessionFull(
            "Not enough places to reserve a seat for every priority invitee",
            details={"stats": after.as_dict(), "over_by": after.used - capacity},
        )
    return after
