"""TrainingSession ORM model: a scheduled, capacity-limited course sitting."""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Integer, CheckConstraint, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from training_bookings.database import Base


class SessionStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELLED = "CANCELLED"


class TrainingSession(Base):
    __tablename__ = "training_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False, index=True)
    course_id = Column(String(36), nullable=False, index=True)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    confirm_deadline = Column(DateTime(timezone=True), nullable=True)
    capacity = Column(Integer, nullable=False)
    status = Column(SAEnum(SessionStatus), nullable=False, default=SessionStatus.PUBLISHED)
    location = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    # compare-and-swap token, bumped by every committed attendee mutation
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    attendees = relationship(
        "SessionAttendee",
        back_populates="session",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_session_capacity_positive"),
    )
