"""Game and Stream models for durable storage.

Only the current value of a stream is stored; change history lives in memory.
"""
from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class Game(Base):
    """A collection of collaboratively edited streams"""
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    guid = Column(String(64), unique=True, nullable=False, index=True)  # public URL-safe id
    owner_id = Column(Integer, ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True, index=True)  # NULL for anonymous games
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    streams = relationship("Stream", back_populates="game", cascade="all, delete-orphan", passive_deletes=True)


class Stream(Base):
    """One text document of a game; id is unique within its game only"""
    __tablename__ = "streams"

    game_id = Column(Integer, ForeignKey('games.id', ondelete='CASCADE'), primary_key=True)
    id = Column(Integer, primary_key=True, autoincrement=False)
    language = Column(Integer, nullable=False)  # catalog language id
    active = Column(Boolean, default=True, nullable=False)
    value = Column(Text, default="", nullable=False)
    player_id = Column(Integer, ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True)

    # Relationships
    game = relationship("Game", back_populates="streams")
