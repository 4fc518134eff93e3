"""Persisted key/value settings."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String
from coaching_backend.database import Base

AUTO_SCHEDULING = "autoScheduling"
WORKING_HOURS = "workingHours"


class Setting(Base):
    """A named settings document, e.g. ``autoScheduling`` or ``workingHours``."""
    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
