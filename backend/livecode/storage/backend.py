"""Persistence protocol for games, streams and accounts.

Defines the interface the document store and the HTTP layer depend on, so
the SQL implementation can be swapped for the in-memory one without changing
callers. Every operation is asynchronous and may raise PersistenceError.
"""
from dataclasses import dataclass
from typing import Optional, Protocol, Union


@dataclass(frozen=True)
class GameRow:
    id: int
    guid: str
    owner_id: Optional[int] = None


@dataclass(frozen=True)
class StreamRow:
    """One stream joined with the guid of its game."""
    stream_id: int
    game_id: int
    guid: str
    language: int
    active: bool
    value: str
    owner_id: Optional[int] = None
    player_id: Optional[int] = None


@dataclass(frozen=True)
class AccountRow:
    id: int
    username: str
    password_hash: str


class GamePersistence(Protocol):
    """Durable storage collaborator.

    Implementations:
    - SqlGamePersistence: SQLAlchemy async sessions (default)
    - InMemoryGamePersistence: dict-based, for tests and ephemeral deployments
    """

    async def ensure_schema(self) -> None:
        """Create missing tables."""
        ...

    async def fetch_games_with_streams(self) -> list[StreamRow]:
        """Every stream joined with its game."""
        ...

    async def insert_game(self, guid: str, owner_id: Optional[int] = None) -> GameRow:
        ...

    async def delete_game(self, game_id: int) -> None:
        """Delete a game and its streams."""
        ...

    async def insert_stream(
        self, game_id: int, stream_id: int, language: int, active: bool, value: str
    ) -> int:
        """Insert a stream and return its per-game id."""
        ...

    async def update_stream_value(self, game_id: int, stream_id: int, value: str) -> None:
        ...

    async def set_stream_player(self, game_id: int, stream_id: int, player_id: Optional[int]) -> None:
        ...

    async def is_guid_used(self, guid: str) -> bool:
        ...

    async def find_account(self, username_or_id: Union[str, int]) -> Optional[AccountRow]:
        """Look an account up by id or case-insensitive username."""
        ...

    async def create_account(self, username: str, password_hash: str) -> AccountRow:
        ...

    async def close(self) -> None:
        ...
