"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from coaching_backend.database import Base


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    first_name = Column(String)
    last_name = Column(String)
    role = Column(String)  # admin/coach/customer
    status = Column(String, default="active")  # active/inactive
    created_at = Column(DateTime, default=datetime.now)
