"""Availability model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from coaching_backend.database import Base

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"


class Availability(Base):
    """A coach-declared date range with weekly recurring session selection."""
    __tablename__ = "availabilities"

    id = Column(Integer, primary_key=True)
    coach_id = Column(Integer, ForeignKey("users.id"), index=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    # {"1": ["session1"], "3": ["session1", "session2"]}, 0 = Sunday
    selected_days = Column(JSON, nullable=False, default=dict)
    status = Column(String, default=PENDING, index=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
