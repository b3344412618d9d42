"""Attendance API routes: every mutation goes through reservation_service."""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from training_bookings.database import get_db
from training_bookings.identity import Actor, get_actor
from training_bookings.schemas.attendance import AttendanceStatusOut, ForcePlaceRequest, InviteOut, InviteRequest
from training_bookings.services import reservation_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _status_out(session_id: str, user_id: str, new_status) -> AttendanceStatusOut:
    return AttendanceStatusOut(session_id=session_id, user_id=user_id, status=new_status.value)


@router.post("/{session_id}/claim", response_model=AttendanceStatusOut)
def claim(session_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Claim a place; lands CONFIRMED, or WAITLISTED when no seat is free."""
    return _status_out(session_id, actor.user_id, reservation_service.claim(db, session_id, actor))


@router.post("/{session_id}/confirm", response_model=AttendanceStatusOut)
def confirm(session_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return _status_out(session_id, actor.user_id, reservation_service.confirm(db, session_id, actor))


@router.post("/{session_id}/decline", response_model=AttendanceStatusOut)
def decline(session_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return _status_out(session_id, actor.user_id, reservation_service.decline(db, session_id, actor))


@router.post("/{session_id}/cancel", response_model=AttendanceStatusOut)
def cancel_attendance(session_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return _status_out(session_id, actor.user_id, reservation_service.cancel_attendance(db, session_id, actor))


@router.post("/{session_id}/invite", response_model=InviteOut, status_code=status.HTTP_200_OK)
def invite(session_id: str, payload: InviteRequest, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Invite a batch; ``priority_user_ids`` get a reserved seat straight away."""
    result = reservation_service.invite(
        db, session_id, actor, user_ids=payload.user_ids, priority_user_ids=payload.priority_user_ids
    )
    return InviteOut(
        inserted=result.inserted,
        reinvited=result.reinvited,
        unchanged=result.unchanged,
        priority=result.priority,
    )


@router.post("/{session_id}/force-place", response_model=AttendanceStatusOut)
def force_place(
    session_id: str, payload: ForcePlaceRequest, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
):
    """Confirm someone directly without them claiming."""
    new_status = reservation_service.force_place(db, session_id, actor, payload.user_id)
    return _status_out(session_id, payload.user_id, new_status)


@router.delete("/{session_id}/attendees/{user_id}", response_model=AttendanceStatusOut)
def remove(session_id: str, user_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Take someone off the session; their row is kept as CANCELLED."""
    return _status_out(session_id, user_id, reservation_service.remove(db, session_id, actor, user_id))
