"""Document store - in-memory mirror of every game's streams.

The store is the single source of truth for stream values while the process
runs. Persistence is write-behind: accepted changes are written asynchronously
and a failed write is logged, never rolled back.

All mutations of the in-memory maps happen between await points, so under
asyncio's cooperative scheduling they are atomic with respect to other
handlers and need no lock.
"""
import asyncio
import logging
import secrets
from typing import Iterable, Optional, Sequence

from livecode.core.exceptions import (
    GuidAllocationError,
    InvalidLanguageError,
    PersistenceError,
    UnknownStreamError,
)
from livecode.models.document import ChangeRecord, GameState, StreamSpec, StreamState, Subscription
from livecode.schemas.languages import get_language
from livecode.schemas.protocol import RangeEdit
from livecode.services.patch import apply_patch
from livecode.storage.backend import GamePersistence

logger = logging.getLogger(__name__)

GUID_ALPHABET = "abcdefghijklmnopqrstuvwxyz1234567890_-"


def generate_guid(length: int) -> str:
    """Random URL-safe game identifier."""
    return "".join(secrets.choice(GUID_ALPHABET) for _ in range(length))


class DocumentStore:
    """Owns game documents and the connection subscription table."""

    def __init__(
        self,
        persistence: GamePersistence,
        guid_length: int = 12,
        guid_max_attempts: Optional[int] = None,
    ):
        self._persistence = persistence
        self._guid_length = guid_length
        self._guid_max_attempts = guid_max_attempts
        # guid -> game, streams keyed by per-game id
        self._games: dict[str, GameState] = {}
        # guid -> last assigned stream id
        self._stream_counters: dict[str, int] = {}
        # connection id -> subscription
        self._subscriptions: dict[str, Subscription] = {}
        # (guid, stream id) -> highest sequence known to be persisted
        self._persisted: dict[tuple[str, int], int] = {}
        self._write_locks: dict[tuple[str, int], asyncio.Lock] = {}
        self._pending_writes: set[asyncio.Task] = set()

    # ---------- lifecycle ----------

    async def init(self) -> list[GameState]:
        """Prepare persistence and load existing games."""
        try:
            await self._persistence.ensure_schema()
        except PersistenceError as e:
            logger.error(f"Schema preparation failed: {e.message}")
        return await self.load()

    async def load(self) -> list[GameState]:
        """Rebuild games and streams from persistence.

        History is not persisted, so every loaded stream starts with
        change_count 0 and no last change.
        """
        try:
            rows = await self._persistence.fetch_games_with_streams()
        except PersistenceError as e:
            logger.error(f"Loading games failed, starting empty: {e.message}")
            return []

        for row in rows:
            game = self._games.get(row.guid)
            if game is None:
                game = GameState(id=row.game_id, guid=row.guid, owner_id=row.owner_id)
                self._games[row.guid] = game
            game.streams[row.stream_id] = StreamState(
                game=row.guid,
                id=row.stream_id,
                language=row.language,
                active=row.active,
                value=row.value,
                player_id=row.player_id,
            )

        for guid, game in self._games.items():
            # Ids are assigned 1..n, so the count and the highest id agree unless rows were removed
            self._stream_counters[guid] = max(len(game.streams), max(game.streams, default=0))

        logger.info(f"Loaded {len(rows)} stream(s) across {len(self._games)} game(s)")
        return list(self._games.values())

    async def flush(self) -> None:
        """Wait for every scheduled durability write."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def shutdown(self) -> None:
        """Drain pending writes and drop all subscriptions."""
        await self.flush()
        self._subscriptions.clear()
        logger.info("Document store shut down")

    # ---------- games ----------

    async def create_game(self, owner_id: Optional[int], stream_specs: Sequence[StreamSpec]) -> GameState:
        """Create a game with its streams.

        Stream ids are taken from the per-game counter synchronously, in
        request order, before any insert is awaited, so ids are 1..n in the
        order requested whatever order the inserts finish in. If any stream insert
        fails the game row is deleted and the first error is re-raised.

        Raises:
            InvalidLanguageError: a spec names a language outside the catalog
            GuidAllocationError: the retry cap was reached
            PersistenceError: the game or a stream could not be stored
        """
        for spec in stream_specs:
            if get_language(spec.language) is None:
                raise InvalidLanguageError(spec.language)

        guid = await self._allocate_guid()
        row = await self._persistence.insert_game(guid, owner_id)

        game = GameState(id=row.id, guid=guid, owner_id=owner_id)
        self._games[guid] = game
        self._stream_counters[guid] = 0

        creations = [
            self._create_stream(game, self._take_stream_id(guid), spec)
            for spec in stream_specs
        ]
        results = await asyncio.gather(*creations, return_exceptions=True)
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            await self._rollback_game(game)
            raise failures[0]

        logger.info(f"Created game {guid} with {len(game.streams)} stream(s) (owner={owner_id})")
        return game

    def _take_stream_id(self, guid: str) -> int:
        self._stream_counters[guid] += 1
        return self._stream_counters[guid]

    async def _create_stream(self, game: GameState, stream_id: int, spec: StreamSpec) -> StreamState:
        await self._persistence.insert_stream(game.id, stream_id, spec.language, spec.active, spec.value)
        stream = StreamState(
            game=game.guid,
            id=stream_id,
            language=spec.language,
            active=spec.active,
            value=spec.value,
        )
        game.streams[stream_id] = stream
        logger.info(f"Stream {stream_id} for game {game.guid} created")
        return stream

    async def _rollback_game(self, game: GameState) -> None:
        self._games.pop(game.guid, None)
        self._stream_counters.pop(game.guid, None)
        try:
            await self._persistence.delete_game(game.id)
        except PersistenceError as e:
            logger.error(f"Compensating delete of game {game.guid} failed: {e.message}")
        else:
            logger.warning(f"Rolled back game {game.guid} after a failed stream creation")

    async def _allocate_guid(self) -> str:
        attempts = 0
        while True:
            attempts += 1
            guid = generate_guid(self._guid_length)
            if guid not in self._games and not await self._persistence.is_guid_used(guid):
                return guid
            logger.debug(f"Guid collision on attempt {attempts}")
            if self._guid_max_attempts and attempts >= self._guid_max_attempts:
                raise GuidAllocationError(attempts)

    def get_game(self, game: str) -> Optional[GameState]:
        return self._games.get(game)

    def list_games(self) -> list[GameState]:
        return list(self._games.values())

    @property
    def game_count(self) -> int:
        return len(self._games)

    # ---------- streams ----------

    def get_stream(self, game: str, stream_id: int) -> Optional[StreamState]:
        """Stream of a game, or None when either is unknown."""
        entry = self._games.get(game)
        if entry is None:
            return None
        return entry.streams.get(stream_id)

    def stream_exists(self, game: str, stream_id: Optional[int] = None) -> bool:
        """Whether a game (and optionally one of its streams) is loaded."""
        if stream_id is None:
            return game in self._games
        return self.get_stream(game, stream_id) is not None

    def next_sequence(self, game: str, stream_id: int) -> int:
        """Sequence number the next accepted change of a stream will get."""
        stream = self.get_stream(game, stream_id)
        if stream is None:
            raise UnknownStreamError(game, stream_id)
        return stream.next_sequence

    def latest_change(self, game: str, stream_id: int) -> Optional[ChangeRecord]:
        stream = self.get_stream(game, stream_id)
        return stream.last_change if stream else None

    def apply_change(
        self,
        game: str,
        stream_id: int,
        operations: Sequence[RangeEdit],
        origin: Optional[str] = None,
    ) -> Optional[ChangeRecord]:
        """Patch a stream and return the accepted change.

        Returns None (and logs) when the stream is unknown. The new value is
        written to persistence in the background.

        Raises:
            InvalidRangeError: the patch does not fit the current value; the
                stream is left untouched
        """
        stream = self.get_stream(game, stream_id)
        if stream is None:
            logger.info(f"Ignoring change for unknown stream {stream_id} of game {game}")
            return None

        stream.value = apply_patch(stream.value, operations)
        stream.change_count += 1
        record = ChangeRecord(
            game=game,
            stream=stream_id,
            operations=tuple(operations),
            sequence=stream.change_count,
            origin=origin,
        )
        stream.last_change = record
        self._schedule_write(stream)

        logger.debug(f"Stream {stream_id} of game {game} updated to sequence {record.sequence}")
        return record

    async def assign_player(self, game: str, stream_id: int, player_id: Optional[int]) -> StreamState:
        """Assign (or clear) the account playing a stream.

        Raises:
            UnknownStreamError: no such stream
            PersistenceError: the assignment could not be stored
        """
        entry = self._games.get(game)
        stream = self.get_stream(game, stream_id)
        if entry is None or stream is None:
            raise UnknownStreamError(game, stream_id)
        await self._persistence.set_stream_player(entry.id, stream_id, player_id)
        stream.player_id = player_id
        logger.info(f"Stream {stream_id} of game {game} assigned to player {player_id}")
        return stream

    def _schedule_write(self, stream: StreamState) -> None:
        task = asyncio.create_task(self._persist_value(stream))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _persist_value(self, stream: StreamState) -> bool:
        """Write the stream's current value; returns whether it was stored."""
        key = (stream.game, stream.id)
        lock = self._write_locks.setdefault(key, asyncio.Lock())
        async with lock:
            game = self._games.get(stream.game)
            if game is None:
                return False
            sequence = stream.change_count
            if self._persisted.get(key, 0) >= sequence:
                # An earlier-queued write already stored this value
                return True
            try:
                await self._persistence.update_stream_value(game.id, stream.id, stream.value)
            except PersistenceError as e:
                logger.error(f"Could not persist stream {stream.id} of game {stream.game}: {e.message}")
                return False
            self._persisted[key] = sequence
            return True

    # ---------- subscriptions ----------

    def add_subscription(self, connection_id: str, game: str, stream_ids: Iterable[int]) -> list[int]:
        """Replace a connection's subscription; returns the stream ids kept.

        Streams that do not exist right now are dropped.
        """
        kept = sorted({stream_id for stream_id in stream_ids if self.stream_exists(game, stream_id)})
        self._subscriptions[connection_id] = Subscription(
            connection_id=connection_id,
            game=game,
            streams=frozenset(kept),
        )
        logger.info(
            f"Connection {connection_id} subscribed on game {game} to streams: "
            f"{', '.join(str(stream_id) for stream_id in kept) or 'none'}"
        )
        return kept

    def remove_subscription(self, connection_id: str) -> bool:
        """Forget a connection's subscription; unknown ids are a no-op."""
        return self._subscriptions.pop(connection_id, None) is not None

    def subscription_for(self, connection_id: str) -> Optional[Subscription]:
        return self._subscriptions.get(connection_id)

    def is_subscribed(self, connection_id: str, game: str, stream_id: int) -> bool:
        subscription = self._subscriptions.get(connection_id)
        return subscription is not None and subscription.includes(game, stream_id)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)
