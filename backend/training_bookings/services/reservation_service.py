"""Reservation orchestrator: the single entry point for attendee mutations.

Every operation runs the same unit of work:

1. load the session and its attendee rows (``SELECT ... FOR UPDATE`` on the
   session row where the database supports it);
2. authorize the change with the capacity allocator against that snapshot;
3. apply it through the attendance state machine, append ledger and
   notification rows, and commit only if the session's ``version`` is still
   the one that was read (compare-and-swap).

A lost compare-and-swap means another actor committed first: the whole unit
is rolled back and replayed on a fresh snapshot, up to
``settings.RESERVATION_MAX_RETRIES`` times, then ConcurrencyConflict.
Authorization failures are never retried. An operation that changes nothing
(a repeated claim, placing someone already confirmed) commits nothing and
leaves the version alone.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, TypeVar, Union

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from training_bookings.config import settings
from training_bookings.exceptions import (
    ConcurrencyConflict,
    ConfirmDeadlinePassed,
    InvalidTransition,
    NotFound,
)
from training_bookings.identity import Actor, Role
from training_bookings.models.attendee import SessionAttendee, AttendeeStatus, AttendeeSource
from training_bookings.models.attendance_mutation import AttendanceMutation, AttendanceAction
from training_bookings.models.notification import Notification, NotificationKind
from training_bookings.models.session import TrainingSession, SessionStatus
from training_bookings.services import attendance_state, capacity, permissions
from training_bookings.services.capacity import CapacityStats, SeatClaim
from training_bookings.services.directory import Directory
from training_bookings.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")

BOOKINGS_LINK = "/bookings"


class _StaleSnapshot(Exception):
    """The session changed between read and write."""


@dataclass(frozen=True)
class _Unchanged:
    """Operation result that wrote nothing; the version is left alone."""

    value: object


@dataclass
class Snapshot:
    session: TrainingSession
    version: int
    rows: dict[str, SessionAttendee]
    stats: CapacityStats


@dataclass
class InviteResult:
    inserted: int = 0
    reinvited: int = 0
    unchanged: int = 0
    priority: int = 0
    user_ids: list[str] = field(default_factory=list)


def _load_snapshot(db: Session, session_id: str) -> Snapshot:
    training_session = (
        db.query(TrainingSession)
        .filter(TrainingSession.id == session_id)
        .with_for_update()
        .first()
    )
    if not training_session:
        raise NotFound("Session not found", details={"session_id": session_id})
    rows = db.query(SessionAttendee).filter(SessionAttendee.session_id == session_id).all()
    return Snapshot(
        session=training_session,
        version=training_session.version,
        rows={row.user_id: row for row in rows},
        stats=capacity.compute_stats(training_session.capacity, rows),
    )


def _claim_version(db: Session, snapshot: Snapshot) -> None:
    """Compare-and-swap the session version; raises _StaleSnapshot if someone got there first."""
    result = db.execute(
        update(TrainingSession)
        .where(TrainingSession.id == snapshot.session.id, TrainingSession.version == snapshot.version)
        .values(version=snapshot.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise _StaleSnapshot(snapshot.session.id)


def _run_unit_of_work(db: Session, session_id: str, operation: Callable[[Snapshot], T]) -> T:
    attempts = max(1, settings.RESERVATION_MAX_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            snapshot = _load_snapshot(db, session_id)
            result = operation(snapshot)
            if isinstance(result, _Unchanged):
                db.rollback()
                return result.value
            _claim_version(db, snapshot)
            db.commit()
            return result
        except (_StaleSnapshot, IntegrityError):
            db.rollback()
            logger.warning(
                "Concurrent change on session %s (attempt %d/%d), retrying",
                session_id, attempt, attempts,
            )
        except Exception:
            db.rollback()
            raise
    logger.error("Giving up on session %s after %d conflicting attempts", session_id, attempts)
    raise ConcurrencyConflict(details={"session_id": session_id})


def _require_published(session: TrainingSession) -> None:
    if session.status != SessionStatus.PUBLISHED:
        raise InvalidTransition(
            f"Session is {session.status.value}; only published sessions take bookings",
            details={"session_status": session.status.value},
        )


def _require_row(snapshot: Snapshot, user_id: str) -> SessionAttendee:
    row = snapshot.rows.get(user_id)
    if row is None:
        raise NotFound(
            "No attendance found for this person on this session",
            details={"session_id": snapshot.session.id, "user_id": user_id},
        )
    return row


def _actor_source(actor: Actor) -> AttendeeSource:
    return AttendeeSource.MANAGER if actor.role == Role.MANAGER else AttendeeSource.COMPANY


def _record(
    db: Session,
    row: SessionAttendee,
    actor: Actor,
    action: AttendanceAction,
    before: Optional[AttendeeStatus],
) -> None:
    db.add(
        AttendanceMutation(
            session_id=row.session_id,
            user_id=row.user_id,
            actor_user_id=actor.user_id,
            action=action,
            before_status=before,
            after_status=row.status,
            source=row.source,
        )
    )


def _notify(db: Session, kind: NotificationKind, session: TrainingSession, recipient_id: str, actor: Actor) -> None:
    starts = as_utc(session.starts_at).strftime("%d/%m/%Y %H:%M")
    if kind == NotificationKind.TRAINING_SESSION_PLACED:
        message = f"You have been placed on this training session: {starts}"
    else:
        message = f"You have been invited to a training session: {starts}"
    db.add(
        Notification(
            kind=kind,
            recipient_id=recipient_id,
            session_id=session.id,
            message=message,
            link=BOOKINGS_LINK,
            payload={"session_id": session.id, "course_id": session.course_id},
            created_by=actor.user_id,
        )
    )


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------
def get_session_stats(db: Session, session_id: str) -> CapacityStats:
    training_session = db.query(TrainingSession).filter(TrainingSession.id == session_id).first()
    if not training_session:
        raise NotFound("Session not found", details={"session_id": session_id})
    rows = db.query(SessionAttendee).filter(SessionAttendee.session_id == session_id).all()
    return capacity.compute_stats(training_session.capacity, rows)


# ---------------------------------------------------------------------------
# Self-service
# ---------------------------------------------------------------------------
def claim(db: Session, session_id: str, actor: Actor, now: Optional[datetime] = None) -> AttendeeStatus:
    """Claim a place for the caller: CONFIRMED if a seat is available to them, else WAITLISTED."""

    def _apply(snapshot: Snapshot) -> Union[AttendeeStatus, _Unchanged]:
        _require_published(snapshot.session)
        permissions.require_company_access(actor, snapshot.session)
        at = now or utcnow()
        row = snapshot.rows.get(actor.user_id)
        target = capacity.decide_claim(snapshot.stats, row)

        if row is None:
            row = attendance_state.create(snapshot.session.id, actor.user_id, target, AttendeeSource.SELF, at)
            db.add(row)
            before = None
        elif row.status == AttendeeStatus.CONFIRMED:
            return _Unchanged(row.status)
        elif row.status == AttendeeStatus.WAITLISTED and target == AttendeeStatus.WAITLISTED:
            return _Unchanged(row.status)
        elif row.status in attendance_state.PENDING_STATUSES:
            before = attendance_state.transition(row, target, at)
        else:
            before = attendance_state.reopen(row, target, AttendeeSource.SELF, at)

        _record(db, row, actor, AttendanceAction.claim, before)
        logger.info(
            "User %s claimed session %s -> %s (general remaining %d)",
            actor.user_id, snapshot.session.id, target.value, snapshot.stats.general_remaining,
        )
        return target

    return _run_unit_of_work(db, session_id, _apply)


def confirm(db: Session, session_id: str, actor: Actor, now: Optional[datetime] = None) -> AttendeeStatus:
    """Caller confirms a pending place, before the session's confirm deadline."""

    def _apply(snapshot: Snapshot) -> AttendeeStatus:
        _require_published(snapshot.session)
        permissions.require_company_access(actor, snapshot.session)
        row = _require_row(snapshot, actor.user_id)
        attendance_state.check_transition(row.status, AttendeeStatus.CONFIRMED)
        at = now or utcnow()
        deadline = as_utc(snapshot.session.confirm_deadline)
        if deadline is not None and as_utc(at) > deadline:
            logger.info("Confirm by %s on session %s rejected: deadline %s passed", actor.user_id, session_id, deadline)
            raise ConfirmDeadlinePassed(
                "The confirm-by date has passed for this session",
                details={"confirm_deadline": deadline.isoformat()},
            )
        capacity.authorize_confirm(snapshot.stats, row)
        before = attendance_state.transition(row, AttendeeStatus.CONFIRMED, at)
        _record(db, row, actor, AttendanceAction.confirm, before)
        logger.info("User %s confirmed place on session %s", actor.user_id, session_id)
        return row.status

    return _run_unit_of_work(db, session_id, _apply)


def decline(db: Session, session_id: str, actor: Actor, now: Optional[datetime] = None) -> AttendeeStatus:
    """Caller turns down a pending invite, booking or waitlist place."""

    def _apply(snapshot: Snapshot) -> AttendeeStatus:
        _require_published(snapshot.session)
        permissions.require_company_access(actor, snapshot.session)
        row = _require_row(snapshot, actor.user_id)
        if row.status not in attendance_state.PENDING_STATUSES:
            raise InvalidTransition(
                f"Only a pending place can be declined (current status {row.status.value})",
                details={"from_status": row.status.value, "to_status": AttendeeStatus.CANCELLED.value},
            )
        before = attendance_state.transition(row, AttendeeStatus.CANCELLED, now or utcnow())
        _record(db, row, actor, AttendanceAction.decline, before)
        logger.info("User %s declined session %s", actor.user_id, session_id)
        return row.status

    return _run_unit_of_work(db, session_id, _apply)


def cancel_attendance(db: Session, session_id: str, actor: Actor, now: Optional[datetime] = None) -> AttendeeStatus:
    """Caller withdraws from the session, freeing any seat they held."""

    def _apply(snapshot: Snapshot) -> AttendeeStatus:
        _require_published(snapshot.session)
        permissions.require_company_access(actor, snapshot.session)
        row = _require_row(snapshot, actor.user_id)
        before = attendance_state.transition(row, AttendeeStatus.CANCELLED, now or utcnow())
        _record(db, row, actor, AttendanceAction.cancel, before)
        logger.info("User %s cancelled attendance on session %s (was %s)", actor.user_id, session_id, before.value)
        return row.status

    return _run_unit_of_work(db, session_id, _apply)


# ---------------------------------------------------------------------------
# Privileged
# ---------------------------------------------------------------------------
def invite(
    db: Session,
    session_id: str,
    actor: Actor,
    user_ids: list[str],
    priority_user_ids: Optional[list[str]] = None,
    now: Optional[datetime] = None,
) -> InviteResult:
    """Invite a batch; invitees also in ``priority_user_ids`` get a reserved seat.

    The batch is all-or-nothing: refused when the session is already full, or
    when the reserved seats it would add do not fit in the remaining capacity.
    Re-inviting leaves CONFIRMED rows as they are and resets other rows to
    INVITED in place.
    """
    invitees = list(dict.fromkeys(user_ids))
    priority = set(priority_user_ids or []) & set(invitees)
    directory = Directory(db)

    def _apply(snapshot: Snapshot) -> InviteResult:
        _require_published(snapshot.session)
        permissions.require_privileged(actor, snapshot.session)
        permissions.require_targets_in_scope(actor, snapshot.session, invitees, directory)
        capacity.authorize_invite(snapshot.stats)

        default_source = _actor_source(actor)
        plan: dict[str, SeatClaim] = {}
        for user_id in invitees:
            row = snapshot.rows.get(user_id)
            if user_id in priority or capacity.holds_reserved_seat(row):
                source = AttendeeSource.PRIORITY
            else:
                source = default_source
            if row is None:
                plan[user_id] = SeatClaim(AttendeeStatus.INVITED, source)
            elif row.status == AttendeeStatus.CONFIRMED:
                plan[user_id] = SeatClaim(row.status, AttendeeSource.PRIORITY if user_id in priority else row.source)
            elif row.status in (AttendeeStatus.ATTENDED, AttendeeStatus.NO_SHOW):
                plan[user_id] = SeatClaim(row.status, row.source)
            else:
                plan[user_id] = SeatClaim(AttendeeStatus.INVITED, source)

        projected = [plan.get(uid, row) for uid, row in snapshot.rows.items()]
        projected += [claim_ for uid, claim_ in plan.items() if uid not in snapshot.rows]
        capacity.authorize_invite_batch(snapshot.session.capacity, projected)

        at = now or utcnow()
        result = InviteResult()
        for user_id, planned in plan.items():
            row = snapshot.rows.get(user_id)
            if row is None:
                row = attendance_state.create(snapshot.session.id, user_id, planned.status, planned.source, at)
                db.add(row)
                before = None
                result.inserted += 1
            elif row.status == planned.status and row.status != AttendeeStatus.INVITED:
                attendance_state.tag_source(row, planned.source)
                result.unchanged += 1
                if planned.source == AttendeeSource.PRIORITY:
                    result.priority += 1
                continue
            else:
                before = attendance_state.reopen(row, planned.status, planned.source, at)
                result.reinvited += 1
            if planned.source == AttendeeSource.PRIORITY:
                result.priority += 1
            result.user_ids.append(user_id)
            _record(db, row, actor, AttendanceAction.invite, before)
            _notify(db, NotificationKind.TRAINING_SESSION_INVITED, snapshot.session, user_id, actor)

        logger.info(
            "Invited %d to session %s by %s (inserted %d, reinvited %d, priority %d)",
            len(invitees), snapshot.session.id, actor.user_id, result.inserted, result.reinvited, result.priority,
        )
        return result

    return _run_unit_of_work(db, session_id, _apply)


def force_place(
    db: Session,
    session_id: str,
    actor: Actor,
    user_id: str,
    now: Optional[datetime] = None,
) -> AttendeeStatus:
    """Confirm someone directly. A reserved seat is always honoured; otherwise a general seat is needed."""
    directory = Directory(db)

    def _apply(snapshot: Snapshot) -> Union[AttendeeStatus, _Unchanged]:
        _require_published(snapshot.session)
        permissions.require_privileged(actor, snapshot.session)
        permissions.require_targets_in_scope(actor, snapshot.session, [user_id], directory)
        row = snapshot.rows.get(user_id)
        capacity.authorize_force_place(snapshot.stats, row)

        at = now or utcnow()
        keep_priority = (
            row is not None
            and row.source == AttendeeSource.PRIORITY
            and row.status in attendance_state.ACTIVE_STATUSES
        )
        source = AttendeeSource.PRIORITY if keep_priority else _actor_source(actor)
        if row is None:
            row = attendance_state.create(snapshot.session.id, user_id, AttendeeStatus.CONFIRMED, source, at)
            db.add(row)
            before = None
        elif row.status == AttendeeStatus.CONFIRMED:
            return _Unchanged(row.status)
        elif row.status in attendance_state.PENDING_STATUSES:
            before = attendance_state.transition(row, AttendeeStatus.CONFIRMED, at)
            attendance_state.tag_source(row, source)
        else:
            before = attendance_state.reopen(row, AttendeeStatus.CONFIRMED, source, at)

        _record(db, row, actor, AttendanceAction.force_place, before)
        _notify(db, NotificationKind.TRAINING_SESSION_PLACED, snapshot.session, user_id, actor)
        logger.info("User %s force-placed %s on session %s (%s)", actor.user_id, user_id, session_id, source.value)
        return AttendeeStatus.CONFIRMED

    return _run_unit_of_work(db, session_id, _apply)


def remove(
    db: Session,
    session_id: str,
    actor: Actor,
    user_id: str,
    now: Optional[datetime] = None,
) -> AttendeeStatus:
    """Take someone off the session regardless of capacity; the row becomes CANCELLED."""

    def _apply(snapshot: Snapshot) -> AttendeeStatus:
        _require_published(snapshot.session)
        permissions.require_remover(actor, snapshot.session)
        row = _require_row(snapshot, user_id)
        before = attendance_state.transition(row, AttendeeStatus.CANCELLED, now or utcnow())
        _record(db, row, actor, AttendanceAction.remove, before)
        logger.info("User %s removed %s from session %s (was %s)", actor.user_id, user_id, session_id, before.value)
        return row.status

    return _run_unit_of_work(db, session_id, _apply)
