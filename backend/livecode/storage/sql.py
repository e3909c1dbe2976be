"""SQLAlchemy persistence backend.

Async implementation using SQLAlchemy 2.0 async API. Database failures are
re-raised as PersistenceError carrying the operation name; callers decide
whether a failure is logged or aborts their operation.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union

from sqlalchemy import Table, delete, func, inspect, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from livecode.core.database_async import build_session_factory, session_scope, sanitize_db_url
from livecode.core.exceptions import AccountExistsError, PersistenceError
from livecode.models.account import Account
from livecode.models.game import Game, Stream
from .backend import AccountRow, GameRow, StreamRow

logger = logging.getLogger(__name__)

# Creation order follows foreign keys
TABLE_CREATORS: dict[str, Table] = {
    "accounts": Account.__table__,
    "games": Game.__table__,
    "streams": Stream.__table__,
}


def _create_if_missing(sync_connection, table: Table) -> bool:
    if inspect(sync_connection).has_table(table.name):
        return False
    table.create(sync_connection)
    return True


class SqlGamePersistence:
    """Persistence collaborator backed by a relational database."""

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._sessions = build_session_factory(engine)

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with session_scope(self._sessions) as session:
                yield session
        except SQLAlchemyError as e:
            raise PersistenceError(operation, str(e)) from e

    async def ensure_schema(self) -> None:
        try:
            async with self._engine.begin() as conn:
                for name, table in TABLE_CREATORS.items():
                    if await conn.run_sync(_create_if_missing, table):
                        logger.info(f"Created table {name}")
        except SQLAlchemyError as e:
            raise PersistenceError("ensure_schema", str(e)) from e
        logger.info(f"Database schema ready: {sanitize_db_url(str(self._engine.url))}")

    async def fetch_games_with_streams(self) -> list[StreamRow]:
        stmt = (
            select(Stream, Game.guid, Game.owner_id)
            .join(Game, Stream.game_id == Game.id)
            .order_by(Game.id, Stream.id)
        )
        async with self._session("fetch_games_with_streams") as session:
            result = await session.execute(stmt)
            return [
                StreamRow(
                    stream_id=stream.id,
                    game_id=stream.game_id,
                    guid=guid,
                    language=stream.language,
                    active=stream.active,
                    value=stream.value,
                    owner_id=owner_id,
                    player_id=stream.player_id,
                )
                for stream, guid, owner_id in result.all()
            ]

    async def insert_game(self, guid: str, owner_id: Optional[int] = None) -> GameRow:
        async with self._session("insert_game") as session:
            game = Game(guid=guid, owner_id=owner_id)
            session.add(game)
            await session.flush()
            return GameRow(id=game.id, guid=game.guid, owner_id=game.owner_id)

    async def delete_game(self, game_id: int) -> None:
        async with self._session("delete_game") as session:
            await session.execute(delete(Stream).where(Stream.game_id == game_id))
            await session.execute(delete(Game).where(Game.id == game_id))

    async def insert_stream(
        self, game_id: int, stream_id: int, language: int, active: bool, value: str
    ) -> int:
        async with self._session("insert_stream") as session:
            stream = Stream(game_id=game_id, id=stream_id, language=language, active=active, value=value)
            session.add(stream)
            await session.flush()
            return stream.id

    async def update_stream_value(self, game_id: int, stream_id: int, value: str) -> None:
        await self._update_stream("update_stream_value", game_id, stream_id, value=value)

    async def set_stream_player(self, game_id: int, stream_id: int, player_id: Optional[int]) -> None:
        await self._update_stream("set_stream_player", game_id, stream_id, player_id=player_id)

    async def _update_stream(self, operation: str, game_id: int, stream_id: int, **values) -> None:
        stmt = (
            update(Stream)
            .where(Stream.game_id == game_id, Stream.id == stream_id)
            .values(**values)
        )
        async with self._session(operation) as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise PersistenceError(operation, f"stream {stream_id} of game {game_id} does not exist")

    async def is_guid_used(self, guid: str) -> bool:
        async with self._session("is_guid_used") as session:
            result = await session.execute(select(func.count(Game.id)).where(Game.guid == guid))
            return (result.scalar() or 0) > 0

    async def find_account(self, username_or_id: Union[str, int]) -> Optional[AccountRow]:
        if isinstance(username_or_id, int):
            stmt = select(Account).where(Account.id == username_or_id)
        else:
            stmt = select(Account).where(func.lower(Account.username) == username_or_id.lower())
        async with self._session("find_account") as session:
            account = (await session.execute(stmt)).scalar_one_or_none()
            if account is None:
                return None
            return AccountRow(id=account.id, username=account.username, password_hash=account.password_hash)

    async def create_account(self, username: str, password_hash: str) -> AccountRow:
        if await self.find_account(username):
            raise AccountExistsError(username)
        async with self._session("create_account") as session:
            account = Account(username=username, password_hash=password_hash)
            session.add(account)
            try:
                await session.flush()
            except IntegrityError:
                # Lost a race with a concurrent signup
                raise AccountExistsError(username) from None
            return AccountRow(id=account.id, username=account.username, password_hash=account.password_hash)

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("Database connections closed")
