"""Account model."""
from sqlalchemy import Column, String, Integer, DateTime
from datetime import datetime, timezone

from .base import Base


class Account(Base):
    """Registered account - may own games and be assigned to streams"""
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(String(128), nullable=False)  # bcrypt hash
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
