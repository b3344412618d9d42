"""Notification ORM model: outbox rows picked up by the delivery service."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from training_bookings.database import Base


class NotificationKind(str, enum.Enum):
    TRAINING_SESSION_INVITED = "TRAINING_SESSION_INVITED"
    TRAINING_SESSION_PLACED = "TRAINING_SESSION_PLACED"


class Notification(Base):
    __tablename__ = "notifications"

    notification_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = Column(SAEnum(NotificationKind), nullable=False)
    recipient_id = Column(String(36), nullable=False, index=True)
    session_id = Column(
        String(36), ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=True
    )
    message = Column(String(500), nullable=False)
    link = Column(String(255), nullable=True)
    payload = Column(JSON, nullable=True)
    created_by = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
