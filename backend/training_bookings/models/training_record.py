"""TrainingRecord ORM model: per-person due state for a course."""
import enum
from sqlalchemy import Column, String, Date, Enum as SAEnum
from training_bookings.database import Base


class DueStatus(str, enum.Enum):
    UP_TO_DATE = "UP_TO_DATE"
    DUE_SOON = "DUE_SOON"
    OVERDUE = "OVERDUE"


class TrainingRecord(Base):
    __tablename__ = "training_records"

    user_id = Column(String(36), primary_key=True)
    course_id = Column(String(36), primary_key=True)
    company_id = Column(String(36), nullable=False, index=True)
    next_due_date = Column(Date, nullable=True)
    status = Column(SAEnum(DueStatus), nullable=False, default=DueStatus.UP_TO_DATE)
