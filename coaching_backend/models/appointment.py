"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from coaching_backend.database import Base

SCHEDULED = "scheduled"
COMPLETED = "completed"
MISSED = "missed"
STATUSES = (SCHEDULED, COMPLETED, MISSED)


class Appointment(Base):
    """Represents a booked coaching appointment."""
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("coach_id", "date", name="uq_appointments_coach_date"),
    )

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("users.id"), index=True)
    coach_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    status = Column(String, default=SCHEDULED)
    notes = Column(String)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
