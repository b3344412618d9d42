"""Training session management: create, list, roster, delete.

Attendee rows are never written here; they only change through
``reservation_service``.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from training_bookings.exceptions import NotFound, NotPermitted
from training_bookings.identity import Actor, Role
from training_bookings.models.attendee import SessionAttendee, AttendeeStatus
from training_bookings.models.attendance_mutation import AttendanceMutation
from training_bookings.models.notification import Notification
from training_bookings.models.session import TrainingSession, SessionStatus
from training_bookings.services import capacity, permissions
from training_bookings.services.directory import Directory
from training_bookings.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

ROSTER_ORDER = {
    AttendeeStatus.CONFIRMED: 0,
    AttendeeStatus.BOOKED: 1,
    AttendeeStatus.INVITED: 2,
}


def get_session(db: Session, session_id: str) -> TrainingSession:
    training_session = db.query(TrainingSession).filter(TrainingSession.id == session_id).first()
    if not training_session:
        raise NotFound("Session not found", details={"session_id": session_id})
    return training_session


def create_session(
    db: Session,
    actor: Actor,
    course_id: str,
    starts_at: datetime,
    capacity_: int,
    ends_at: Optional[datetime] = None,
    confirm_deadline: Optional[datetime] = None,
    status: str = "PUBLISHED",
    location: Optional[str] = None,
    notes: Optional[str] = None,
    company_id: Optional[str] = None,
) -> TrainingSession:
    """Create a session for the actor's company (admins name the company)."""
    if not actor.is_privileged:
        raise NotPermitted("Only company, manager or admin users can create sessions")
    if actor.role != Role.ADMIN:
        if company_id and company_id != actor.company_id:
            raise NotPermitted("You can only create sessions for your own company")
        company_id = actor.company_id
    if not company_id:
        raise NotPermitted("A company is required to create a session")

    training_session = TrainingSession(
        company_id=company_id,
        course_id=course_id,
        starts_at=starts_at,
        ends_at=ends_at,
        confirm_deadline=confirm_deadline,
        capacity=capacity_,
        status=SessionStatus(status),
        location=location,
        notes=notes,
        version=1,
        created_by=actor.user_id,
    )
    db.add(training_session)
    db.commit()
    db.refresh(training_session)
    logger.info(
        "Created session %s (course %s, capacity %d) by %s",
        training_session.id, course_id, capacity_, actor.user_id,
    )
    return training_session


def stats_by_session(db: Session, sessions: list[TrainingSession]) -> dict[str, capacity.CapacityStats]:
    """Live seat stats for many sessions from a single attendee query."""
    ids = [s.id for s in sessions]
    grouped: dict[str, list[SessionAttendee]] = defaultdict(list)
    if ids:
        for row in db.query(SessionAttendee).filter(SessionAttendee.session_id.in_(ids)).all():
            grouped[row.session_id].append(row)
    return {s.id: capacity.compute_stats(s.capacity, grouped[s.id]) for s in sessions}


def list_sessions(
    db: Session,
    actor: Actor,
    company_id: Optional[str] = None,
    starts_after: Optional[datetime] = None,
    starts_before: Optional[datetime] = None,
    include_unpublished: bool = False,
) -> list[dict[str, Any]]:
    if actor.role != Role.ADMIN:
        company_id = actor.company_id
    query = db.query(TrainingSession)
    if company_id:
        query = query.filter(TrainingSession.company_id == company_id)
    if starts_after:
        query = query.filter(TrainingSession.starts_at >= starts_after)
    if starts_before:
        query = query.filter(TrainingSession.starts_at <= starts_before)
    if not include_unpublished or not actor.is_privileged:
        query = query.filter(TrainingSession.status == SessionStatus.PUBLISHED)
    sessions = query.order_by(TrainingSession.starts_at).all()
    stats = stats_by_session(db, sessions)
    return [{"session": s, "stats": stats[s.id]} for s in sessions]


def delete_session(db: Session, actor: Actor, session_id: str) -> None:
    """Hard delete; attendee rows, ledger rows and notifications go with it."""
    training_session = get_session(db, session_id)
    permissions.require_privileged(actor, training_session)
    db.query(AttendanceMutation).filter(AttendanceMutation.session_id == session_id).delete(
        synchronize_session=False
    )
    db.query(Notification).filter(Notification.session_id == session_id).delete(synchronize_session=False)
    db.delete(training_session)
    db.commit()
    logger.info("Deleted session %s by %s", session_id, actor.user_id)


def get_roster(db: Session, actor: Actor, session_id: str) -> dict[str, Any]:
    """Attendees with display names: confirmed first, then booked, invited, the rest."""
    training_session = get_session(db, session_id)
    permissions.require_privileged(actor, training_session)
    rows = db.query(SessionAttendee).filter(SessionAttendee.session_id == session_id).all()
    names = Directory(db).display_names(r.user_id for r in rows)
    rows.sort(key=lambda r: ROSTER_ORDER.get(r.status, 3))
    return {
        "session_id": session_id,
        "stats": capacity.compute_stats(training_session.capacity, rows),
        "attendees": [
            {
                "user_id": r.user_id,
                "name": names.get(r.user_id) or r.user_id,
                "status": r.status.value,
                "source": r.source.value,
            }
            for r in rows
        ],
    }


def list_my_bookings(db: Session, actor: Actor, now: Optional[datetime] = None) -> dict[str, list]:
    """The caller's attendances, split into upcoming (soonest first) and history (latest first)."""
    now = as_utc(now or utcnow())
    rows = (
        db.query(SessionAttendee, TrainingSession)
        .join(TrainingSession, TrainingSession.id == SessionAttendee.session_id)
        .filter(SessionAttendee.user_id == actor.user_id)
        .all()
    )
    upcoming, history = [], []
    for attendance, training_session in rows:
        entry = {"attendance": attendance, "session": training_session}
        if as_utc(training_session.starts_at) >= now:
            upcoming.append(entry)
        else:
            history.append(entry)
    upcoming.sort(key=lambda e: as_utc(e["session"].starts_at))
    history.sort(key=lambda e: as_utc(e["session"].starts_at), reverse=True)
    return {"upcoming": upcoming, "history": history}
