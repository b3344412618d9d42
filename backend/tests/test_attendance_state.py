"""Tests for the attendance state machine: legal moves, timestamps, reopen."""
from datetime import datetime, timedelta, timezone

import pytest

from training_bookings.exceptions import InvalidTransition
from training_bookings.models.attendee import AttendeeStatus, AttendeeSource
from training_bookings.services import attendance_state

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _row(status=AttendeeStatus.INVITED, source=AttendeeSource.COMPANY):
    return attendance_state.create("session-1", "alice", status, source, T0)


class TestTransitionTable:
    """Which status changes are legal."""

    @pytest.mark.parametrize("current", [AttendeeStatus.INVITED, AttendeeStatus.BOOKED, AttendeeStatus.WAITLISTED])
    def test_pending_can_confirm(self, current):
        assert attendance_state.can_transition(current, AttendeeStatus.CONFIRMED)

    @pytest.mark.parametrize("current", [
        AttendeeStatus.INVITED, AttendeeStatus.BOOKED, AttendeeStatus.WAITLISTED, AttendeeStatus.CONFIRMED,
    ])
    def test_active_can_cancel(self, current):
        assert attendance_state.can_transition(current, AttendeeStatus.CANCELLED)

    def test_claim_can_degrade_invite_to_waitlist(self):
        assert attendance_state.can_transition(AttendeeStatus.INVITED, AttendeeStatus.WAITLISTED)
        assert not attendance_state.can_transition(AttendeeStatus.CONFIRMED, AttendeeStatus.WAITLISTED)

    @pytest.mark.parametrize("terminal", [AttendeeStatus.CANCELLED, AttendeeStatus.ATTENDED, AttendeeStatus.NO_SHOW])
    def test_terminal_states_go_nowhere(self, terminal):
        for target in AttendeeStatus:
            assert not attendance_state.can_transition(terminal, target)

    def test_check_transition_raises_with_details(self):
        with pytest.raises(InvalidTransition) as exc_info:
            attendance_state.check_transition(AttendeeStatus.CANCELLED, AttendeeStatus.CONFIRMED)
        assert exc_info.value.details == {"from_status": "CANCELLED", "to_status": "CONFIRMED"}
        assert exc_info.value.status_code == 409


class TestCreate:
    """Brand-new rows."""

    def test_create_invited_stamps_invited_at_only(self):
        row = _row()
        assert row.status == AttendeeStatus.INVITED
        assert row.invited_at == T0
        assert row.confirmed_at is None
        assert row.cancelled_at is None

    def test_create_confirmed(self):
        row = _row(AttendeeStatus.CONFIRMED, AttendeeSource.SELF)
        assert row.confirmed_at == T0
        assert row.invited_at is None

    def test_create_waitlisted_stamps_booked_at(self):
        row = _row(AttendeeStatus.WAITLISTED, AttendeeSource.SELF)
        assert row.booked_at == T0

    @pytest.mark.parametrize("status", [AttendeeStatus.CANCELLED, AttendeeStatus.BOOKED, AttendeeStatus.ATTENDED])
    def test_cannot_start_elsewhere(self, status):
        with pytest.raises(InvalidTransition):
            _row(status)


class TestTransition:
    """In-place status changes."""

    def test_confirm_sets_confirmed_at_and_keeps_invited_at(self):
        row = _row()
        later = T0 + timedelta(hours=2)
        previous = attendance_state.transition(row, AttendeeStatus.CONFIRMED, later)
        assert previous == AttendeeStatus.INVITED
        assert row.status == AttendeeStatus.CONFIRMED
        assert row.invited_at == T0
        assert row.confirmed_at == later

    def test_illegal_transition_leaves_row_untouched(self):
        row = _row(AttendeeStatus.CONFIRMED, AttendeeSource.SELF)
        with pytest.raises(InvalidTransition):
            attendance_state.transition(row, AttendeeStatus.WAITLISTED, T0 + timedelta(hours=1))
        assert row.status == AttendeeStatus.CONFIRMED
        assert row.booked_at is None

    def test_timestamp_is_set_once(self):
        row = _row(AttendeeStatus.WAITLISTED, AttendeeSource.SELF)
        attendance_state.transition(row, AttendeeStatus.CONFIRMED, T0 + timedelta(hours=1))
        assert row.booked_at == T0


class TestReopen:
    """Re-entry after CANCELLED and re-invites overwrite the same row."""

    def test_reopen_after_cancel_advances_timestamp(self):
        row = _row(AttendeeStatus.CONFIRMED, AttendeeSource.SELF)
        attendance_state.transition(row, AttendeeStatus.CANCELLED, T0 + timedelta(hours=1))
        later = T0 + timedelta(days=1)
        previous = attendance_state.reopen(row, AttendeeStatus.CONFIRMED, AttendeeSource.MANAGER, later)
        assert previous == AttendeeStatus.CANCELLED
        assert row.status == AttendeeStatus.CONFIRMED
        assert row.source == AttendeeSource.MANAGER
        assert row.confirmed_at == later
        # never cleared
        assert row.cancelled_at == T0 + timedelta(hours=1)

    def test_reopen_never_moves_timestamp_backwards(self):
        row = _row()
        attendance_state.reopen(row, AttendeeStatus.INVITED, None, T0 - timedelta(days=1))
        assert row.invited_at == T0
        assert row.source == AttendeeSource.COMPANY

    def test_reopen_refuses_recorded_attendance(self):
        row = _row()
        row.status = AttendeeStatus.ATTENDED
        with pytest.raises(InvalidTransition):
            attendance_state.reopen(row, AttendeeStatus.INVITED, AttendeeSource.COMPANY, T0)

    def test_tag_source_leaves_status(self):
        row = _row(AttendeeStatus.CONFIRMED, AttendeeSource.SELF)
        attendance_state.tag_source(row, AttendeeSource.PRIORITY)
        assert row.source == AttendeeSource.PRIORITY
        assert row.status == AttendeeStatus.CONFIRMED
