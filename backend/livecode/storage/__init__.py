"""Persistence layer for games, streams and accounts.

Provides a pluggable backend interface so the document store can run against
a relational database or a purely in-memory store.

Configuration:
    PERSISTENCE_BACKEND=sql (default) | memory
    DATABASE_URL=sqlite:///data/livecode.db (used when backend=sql)
"""

import logging

from livecode.core.config import Settings
from livecode.storage.backend import AccountRow, GamePersistence, GameRow, StreamRow
from livecode.storage.memory import InMemoryGamePersistence

logger = logging.getLogger(__name__)

__all__ = [
    "AccountRow",
    "GamePersistence",
    "GameRow",
    "InMemoryGamePersistence",
    "StreamRow",
    "create_persistence",
]


def create_persistence(config: Settings) -> GamePersistence:
    """Create a persistence backend based on configuration.

    Returns:
        Configured GamePersistence instance
    """
    backend_type = config.PERSISTENCE_BACKEND.lower().strip()

    if backend_type == "memory":
        logger.info("Persistence backend: memory (data is lost on restart)")
        return InMemoryGamePersistence()

    if backend_type != "sql":
        logger.warning("Unknown PERSISTENCE_BACKEND=%s, using sql", backend_type)

    from livecode.core.database_async import build_async_engine, sanitize_db_url
    from livecode.storage.sql import SqlGamePersistence

    logger.info("Persistence backend: sql (%s)", sanitize_db_url(config.DATABASE_URL_ASYNC))
    engine = build_async_engine(config.DATABASE_URL_ASYNC, echo=config.DEBUG)
    return SqlGamePersistence(engine)
