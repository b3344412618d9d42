"""Person ORM model: directory rows used for visibility scoping and display."""
from sqlalchemy import Column, String
from training_bookings.database import Base


class Person(Base):
    __tablename__ = "people"

    user_id = Column(String(36), primary_key=True)
    display_name = Column(String(150), nullable=False)
    company_id = Column(String(36), nullable=False, index=True)
    home_id = Column(String(36), nullable=True, index=True)
