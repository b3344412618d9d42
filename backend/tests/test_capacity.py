"""Tests for the capacity allocator's seat arithmetic and authorization rules."""
import pytest

from training_bookings.exceptions import SessionFull
from training_bookings.models.attendee import AttendeeStatus as S, AttendeeSource as Src
from training_bookings.services import capacity
from training_bookings.services.capacity import SeatClaim


def _stats(cap, *rows):
    return capacity.compute_stats(cap, [SeatClaim(status, source) for status, source in rows])


class TestComputeStats:
    """priority_holds / confirmed_non_priority / used / general_remaining / is_full."""

    def test_empty_session(self):
        stats = _stats(3)
        assert stats.as_dict() == {
            "capacity": 3,
            "priority_holds": 0,
            "confirmed_non_priority": 0,
            "general_remaining": 3,
            "used": 0,
            "is_full": False,
        }

    def test_priority_invite_holds_a_seat_before_acting(self):
        stats = _stats(3, (S.INVITED, Src.PRIORITY))
        assert stats.priority_holds == 1
        assert stats.general_remaining == 2

    def test_non_priority_invites_hold_nothing(self):
        stats = _stats(2, (S.INVITED, Src.COMPANY), (S.BOOKED, Src.MANAGER), (S.WAITLISTED, Src.SELF))
        assert stats.used == 0
        assert stats.general_remaining == 2

    def test_cancelled_priority_releases_seat(self):
        stats = _stats(2, (S.CANCELLED, Src.PRIORITY), (S.WAITLISTED, Src.PRIORITY))
        assert stats.priority_holds == 0

    def test_confirmed_priority_counted_once(self):
        stats = _stats(2, (S.CONFIRMED, Src.PRIORITY), (S.CONFIRMED, Src.SELF))
        assert stats.priority_holds == 1
        assert stats.confirmed_non_priority == 1
        assert stats.used == 2
        assert stats.is_full

    def test_general_remaining_never_negative(self):
        stats = _stats(1, (S.INVITED, Src.PRIORITY), (S.CONFIRMED, Src.SELF))
        assert stats.general_remaining == 0
        assert stats.used == 2


class TestDecideClaim:
    """Self-claim lands CONFIRMED or WAITLISTED, never an error."""

    def test_general_seat_available(self):
        assert capacity.decide_claim(_stats(1), None) == S.CONFIRMED

    def test_no_general_seat_waitlists(self):
        stats = _stats(1, (S.INVITED, Src.PRIORITY))
        assert capacity.decide_claim(stats, None) == S.WAITLISTED
        assert capacity.decide_claim(stats, SeatClaim(S.INVITED, Src.COMPANY)) == S.WAITLISTED

    def test_priority_holder_consumes_reserved_seat(self):
        stats = _stats(1, (S.INVITED, Src.PRIORITY))
        assert capacity.decide_claim(stats, SeatClaim(S.INVITED, Src.PRIORITY)) == S.CONFIRMED

    def test_cancelled_priority_row_has_no_reservation(self):
        stats = _stats(1, (S.CONFIRMED, Src.SELF))
        assert capacity.decide_claim(stats, SeatClaim(S.CANCELLED, Src.PRIORITY)) == S.WAITLISTED


class TestAuthorize:
    """Confirm, force-place and invite checks."""

    def test_confirm_needs_general_seat(self):
        stats = _stats(1, (S.CONFIRMED, Src.SELF))
        with pytest.raises(SessionFull) as exc_info:
            capacity.authorize_confirm(stats, SeatClaim(S.INVITED, Src.COMPANY))
        assert exc_info.value.details["stats"]["general_remaining"] == 0

    def test_confirm_priority_always_honoured(self):
        stats = _stats(1, (S.INVITED, Src.PRIORITY))
        capacity.authorize_confirm(stats, SeatClaim(S.INVITED, Src.PRIORITY))

    def test_force_place_rejected_when_full(self):
        stats = _stats(1, (S.CONFIRMED, Src.SELF))
        with pytest.raises(SessionFull, match="cannot force place"):
            capacity.authorize_force_place(stats, None)

    def test_force_place_priority_row_allowed(self):
        stats = _stats(2, (S.INVITED, Src.PRIORITY))
        capacity.authorize_force_place(stats, SeatClaim(S.INVITED, Src.PRIORITY))

    def test_invite_rejected_when_full(self):
        with pytest.raises(SessionFull):
            capacity.authorize_invite(_stats(1, (S.CONFIRMED, Src.SELF)))

    def test_invite_batch_checks_aggregate(self):
        projected = [SeatClaim(S.INVITED, Src.PRIORITY)] * 3
        with pytest.raises(SessionFull) as exc_info:
            capacity.authorize_invite_batch(2, projected)
        assert exc_info.value.details["over_by"] == 1

    def test_invite_batch_that_fits(self):
        after = capacity.authorize_invite_batch(2, [SeatClaim(S.INVITED, Src.PRIORITY), SeatClaim(S.INVITED, Src.SELF)])
        assert after.used == 1
