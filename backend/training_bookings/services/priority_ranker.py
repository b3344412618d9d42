"""Priority ranker: who should be offered a reserved seat on a session.

Advisory only: it reads due-status rows and the session's attendee list and
never writes. If the due-status source or the directory fails, ranking
degrades to an empty list so that reservations keep working.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from training_bookings.config import settings
from training_bookings.identity import Actor
from training_bookings.models.attendee import SessionAttendee, AttendeeStatus
from training_bookings.models.session import TrainingSession
from training_bookings.models.training_record import TrainingRecord, DueStatus
from training_bookings.services.directory import Directory
from training_bookings.timeutils import as_utc, local_midnight, utcnow

logger = logging.getLogger(__name__)

RANKED_STATUSES = (DueStatus.OVERDUE, DueStatus.DUE_SOON)

OVERDUE_BASE = 2000
DUE_SOON_BASE = 1000
MISSING_DUE_DAYS = 9999
SECONDS_PER_DAY = 86400


class DueStatusRow(Protocol):
    user_id: str
    next_due_date: Optional[date]
    status: DueStatus


class DueStatusSource(Protocol):
    def fetch(self, company_id: str, course_id: str) -> Iterable[DueStatusRow]:
        ...


class SqlDueStatusSource:
    """Due-status rows from the ``training_records`` table."""

    def __init__(self, db: Session):
        self.db = db

    def fetch(self, company_id: str, course_id: str) -> list[TrainingRecord]:
        return (
            self.db.query(TrainingRecord)
            .filter(
                TrainingRecord.company_id == company_id,
                TrainingRecord.course_id == course_id,
                TrainingRecord.status.in_(RANKED_STATUSES),
            )
            .all()
        )


@dataclass(frozen=True)
class PriorityCandidate:
    user_id: str
    status: DueStatus
    next_due_date: Optional[date]
    score: int
    reason: str


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _plural(n: int) -> str:
    return "day" if n == 1 else "days"


def days_until(next_due_date: Optional[date], now: datetime, tz_name: str) -> Optional[int]:
    """Whole days from ``now`` to the due date; negative when overdue."""
    if next_due_date is None:
        return None
    delta = local_midnight(next_due_date, tz_name) - as_utc(now)
    return _round_half_up(delta.total_seconds() / SECONDS_PER_DAY)


def score_candidate(status: DueStatus, days: Optional[int]) -> tuple[int, str]:
    """Overdue always outranks due-soon; deeper overdue and sooner due rank higher."""
    if status == DueStatus.OVERDUE:
        overdue_days = max(0, -days) if days is not None else 0
        return OVERDUE_BASE + overdue_days, f"Overdue by {overdue_days} {_plural(overdue_days)}"
    effective = max(0, days) if days is not None else MISSING_DUE_DAYS
    shown = max(0, days or 0)
    return DUE_SOON_BASE - effective, f"Due in {shown} {_plural(shown)}"


def rank_candidates(
    rows: Iterable[DueStatusRow],
    attached_user_ids: Iterable[str],
    visible_user_ids: Iterable[str],
    now: datetime,
    tz_name: str = "UTC",
) -> list[PriorityCandidate]:
    attached = set(attached_user_ids)
    visible = set(visible_user_ids)
    candidates = []
    for row in rows:
        if row.status not in RANKED_STATUSES:
            continue
        if row.user_id in attached or row.user_id not in visible:
            continue
        days = days_until(row.next_due_date, now, tz_name)
        score, reason = score_candidate(row.status, days)
        candidates.append(
            PriorityCandidate(
                user_id=row.user_id,
                status=row.status,
                next_due_date=row.next_due_date,
                score=score,
                reason=reason,
            )
        )
    candidates.sort(key=lambda c: (-c.score, c.user_id))
    return candidates


def rank_priority_candidates(
    db: Session,
    company_id: str,
    course_id: str,
    session_id: str,
    visible_user_ids: list[str],
    now: Optional[datetime] = None,
    source: Optional[DueStatusSource] = None,
) -> list[PriorityCandidate]:
    """Ordered reservation suggestions for one session, or [] if due data is unavailable."""
    if not company_id or not course_id or not visible_user_ids:
        return []
    source = source or SqlDueStatusSource(db)
    try:
        rows = list(source.fetch(company_id, course_id))
    except Exception:
        db.rollback()
        logger.warning(
            "Due-status lookup failed for company %s course %s; no priority suggestions",
            company_id, course_id, exc_info=True,
        )
        return []

    attached = [
        row.user_id
        for row in db.query(SessionAttendee.user_id)
        .filter(SessionAttendee.session_id == session_id, SessionAttendee.status != AttendeeStatus.CANCELLED)
        .all()
    ]
    ranked = rank_candidates(rows, attached, visible_user_ids, now or utcnow(), settings.TIMEZONE)
    logger.info("Ranked %d priority candidates for session %s", len(ranked), session_id)
    return ranked


@dataclass(frozen=True)
class NamedCandidate:
    candidate: PriorityCandidate
    name: str


def suggest_priority_candidates(
    db: Session,
    actor: Actor,
    training_session: TrainingSession,
    directory: Optional[Directory] = None,
    now: Optional[datetime] = None,
    source: Optional[DueStatusSource] = None,
) -> list[NamedCandidate]:
    """Ranked suggestions the actor may see, with display names.

    A directory failure while resolving the visible set degrades to [], and
    a failed name lookup falls back to user ids.
    """
    directory = directory or Directory(db)
    session_id = training_session.id
    try:
        visible = directory.visible_user_ids(actor, company_id=training_session.company_id)
    except Exception:
        db.rollback()
        logger.warning(
            "Directory lookup failed for session %s; no priority suggestions",
            session_id, exc_info=True,
        )
        return []

    ranked = rank_priority_candidates(
        db,
        company_id=training_session.company_id,
        course_id=training_session.course_id,
        session_id=session_id,
        visible_user_ids=visible,
        now=now,
        source=source,
    )
    try:
        names = directory.display_names(c.user_id for c in ranked)
    except Exception:
        db.rollback()
        logger.warning("Display-name lookup failed for session %s", session_id, exc_info=True)
        names = {}
    return [NamedCandidate(candidate=c, name=names.get(c.user_id) or c.user_id) for c in ranked]
