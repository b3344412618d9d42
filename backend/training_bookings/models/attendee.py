"""SessionAttendee ORM model: one row per (session, person)."""
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship
from training_bookings.database import Base


class AttendeeStatus(str, enum.Enum):
    INVITED = "INVITED"
    BOOKED = "BOOKED"
    CONFIRMED = "CONFIRMED"
    WAITLISTED = "WAITLISTED"
    CANCELLED = "CANCELLED"
    ATTENDED = "ATTENDED"
    NO_SHOW = "NO_SHOW"


class AttendeeSource(str, enum.Enum):
    SELF = "SELF"
    COMPANY = "COMPANY"
    MANAGER = "MANAGER"
    PRIORITY = "PRIORITY"  # the only source that holds a protected seat


class SessionAttendee(Base):
    __tablename__ = "training_session_attendees"

    session_id = Column(
        String(36), ForeignKey("training_sessions.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(String(36), primary_key=True, index=True)
    status = Column(SAEnum(AttendeeStatus), nullable=False)
    source = Column(SAEnum(AttendeeSource), nullable=False, default=AttendeeSource.SELF)
    invited_at = Column(DateTime(timezone=True), nullable=True)
    booked_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    attended_at = Column(DateTime(timezone=True), nullable=True)

    session = relationship("TrainingSession", back_populates="attendees")
