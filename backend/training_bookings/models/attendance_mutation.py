"""AttendanceMutation ORM model: append-only ledger of attendee changes."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from training_bookings.database import Base
from training_bookings.models.attendee import AttendeeStatus, AttendeeSource


class AttendanceAction(str, enum.Enum):
    claim = "claim"
    invite = "invite"
    force_place = "force_place"
    confirm = "confirm"
    decline = "decline"
    cancel = "cancel"
    remove = "remove"


class AttendanceMutation(Base):
    __tablename__ = "attendance_mutations"

    mutation_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(
        String(36), ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), nullable=False)
    actor_user_id = Column(String(36), nullable=False)
    action = Column(SAEnum(AttendanceAction), nullable=False)
    before_status = Column(SAEnum(AttendeeStatus), nullable=True)
    after_status = Column(SAEnum(AttendeeStatus), nullable=False)
    source = Column(SAEnum(AttendeeSource), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
