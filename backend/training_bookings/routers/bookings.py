"""The caller's own bookings."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from training_bookings.database import get_db
from training_bookings.identity import Actor, get_actor
from training_bookings.schemas.attendance import AttendeeOut, MyBookingOut, MyBookingsOut
from training_bookings.schemas.session import SessionOut
from training_bookings.services import session_service

router = APIRouter()


def _entry(item) -> MyBookingOut:
    return MyBookingOut(
        attendance=AttendeeOut.model_validate(item["attendance"]),
        session=SessionOut.model_validate(item["session"]),
    )


@router.get("/me", response_model=MyBookingsOut)
def my_bookings(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    bookings = session_service.list_my_bookings(db, actor)
    return MyBookingsOut(
        upcoming=[_entry(item) for item in bookings["upcoming"]],
        history=[_entry(item) for item in bookings["history"]],
    )
