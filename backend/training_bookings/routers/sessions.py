"""Training session API routes: management, stats, roster and priority suggestions."""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from training_bookings.database import get_db
from training_bookings.identity import Actor, get_actor
from training_bookings.schemas.attendance import PriorityCandidateOut, RosterEntryOut, RosterOut
from training_bookings.schemas.session import SessionCreate, SessionOut, SessionStatsOut, SessionWithStatsOut
from training_bookings.services import permissions, reservation_service, session_service
from training_bookings.services.priority_ranker import suggest_priority_candidates

logger = logging.getLogger(__name__)
router = APIRouter()


def _with_stats(training_session, stats) -> SessionWithStatsOut:
    return SessionWithStatsOut(
        **SessionOut.model_validate(training_session).model_dump(),
        stats=SessionStatsOut(**stats.as_dict()),
    )


@router.post("/", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def create_session(payload: SessionCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Create a training session (published by default)."""
    return session_service.create_session(
        db=db,
        actor=actor,
        course_id=payload.course_id,
        starts_at=payload.starts_at,
        capacity_=payload.capacity,
        ends_at=payload.ends_at,
        confirm_deadline=payload.confirm_deadline,
        status=payload.status,
        location=payload.location,
        notes=payload.notes,
        company_id=payload.company_id,
    )


@router.get("/", response_model=list[SessionWithStatsOut])
def list_sessions(
    company_id: Optional[str] = Query(None),
    starts_after: Optional[datetime] = Query(None),
    starts_before: Optional[datetime] = Query(None),
    include_unpublished: bool = Query(False),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """List sessions with live seat counts, soonest first."""
    items = session_service.list_sessions(
        db,
        actor,
        company_id=company_id,
        starts_after=starts_after,
        starts_before=starts_before,
        include_unpublished=include_unpublished,
    )
    return [_with_stats(item["session"], item["stats"]) for item in items]


@router.get("/{session_id}", response_model=SessionWithStatsOut)
def get_session(session_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    training_session = session_service.get_session(db, session_id)
    permissions.require_company_access(actor, training_session)
    return _with_stats(training_session, reservation_service.get_session_stats(db, session_id))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Hard-delete a session and everything attached to it."""
    session_service.delete_session(db, actor, session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{session_id}/stats", response_model=SessionStatsOut)
def get_session_stats(session_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    training_session = session_service.get_session(db, session_id)
    permissions.require_company_access(actor, training_session)
    return SessionStatsOut(**reservation_service.get_session_stats(db, session_id).as_dict())


@router.get("/{session_id}/roster", response_model=RosterOut)
def get_roster(session_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    roster = session_service.get_roster(db, actor, session_id)
    return RosterOut(
        session_id=roster["session_id"],
        stats=SessionStatsOut(**roster["stats"].as_dict()),
        attendees=[RosterEntryOut(**entry) for entry in roster["attendees"]],
    )


@router.get("/{session_id}/priority-candidates", response_model=list[PriorityCandidateOut])
def get_priority_candidates(session_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Overdue / due-soon people the caller may invite, most urgent first."""
    training_session = session_service.get_session(db, session_id)
    permissions.require_privileged(actor, training_session)
    suggestions = suggest_priority_candidates(db, actor, training_session)
    return [
        PriorityCandidateOut(
            user_id=s.candidate.user_id,
            name=s.name,
            status=s.candidate.status.value,
            next_due_date=s.candidate.next_due_date,
            score=s.candidate.score,
            reason=s.candidate.reason,
        )
        for s in suggestions
    ]
