"""Async database engine and session management.

This module provides async database support using SQLAlchemy 2.0 async API.
The persistence layer owns one engine per configured URL; nothing here is
created at import time.
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(url: str) -> None:
    """Create the directory of a file-based SQLite database."""
    marker = ":///"
    if marker not in url:
        return
    path = url.split(marker, 1)[1]
    if not path or path.startswith(":memory:"):
        return
    directory = os.path.dirname(path)
    if not directory:
        return
    try:
        os.makedirs(directory, exist_ok=True)
    except PermissionError as e:
        logger.warning(f"Cannot create data directory {directory}: {e}")


def build_async_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pool settings suited to the driver."""
    is_sqlite = url.startswith("sqlite")
    if not is_sqlite:
        # Default QueuePool for server databases
        return create_async_engine(url, echo=echo)

    _ensure_sqlite_dir(url)
    engine = create_async_engine(
        url,
        echo=echo,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Enforce foreign keys so deleting a game removes its streams."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the async session factory bound to an engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """
    Yield a session that commits on success and rolls back on error.

    Usage:
        async with session_scope(factory) as session:
            session.add(row)
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def sanitize_db_url(url: str) -> str:
    """Sanitize database URL to hide password."""
    if "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    if "@" in rest:
        credentials, host_db = rest.split("@", 1)
        if ":" in credentials:
            user, _ = credentials.split(":", 1)
            return f"{scheme}://{user}:***@{host_db}"
    return url
