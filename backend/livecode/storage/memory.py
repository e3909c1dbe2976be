"""In-memory persistence backend.

Keeps games, streams and accounts in Python dicts. Semantics match
SqlGamePersistence: game ids are serial, stream ids are per game, deleting a
game deletes its streams, and usernames are unique case-insensitively.
"""
from typing import Optional, Union

from livecode.core.exceptions import AccountExistsError, PersistenceError
from .backend import AccountRow, GameRow, StreamRow


class InMemoryGamePersistence:
    """Dict-based persistence collaborator."""

    def __init__(self) -> None:
        self._games: dict[int, GameRow] = {}
        self._streams: dict[tuple[int, int], dict] = {}
        self._accounts: dict[int, AccountRow] = {}
        self._next_game_id = 1
        self._next_account_id = 1

    async def ensure_schema(self) -> None:
        return None

    async def fetch_games_with_streams(self) -> list[StreamRow]:
        rows = []
        for (game_id, stream_id), stream in sorted(self._streams.items()):
            game = self._games[game_id]
            rows.append(StreamRow(
                stream_id=stream_id,
                game_id=game_id,
                guid=game.guid,
                language=stream["language"],
                active=stream["active"],
                value=stream["value"],
                owner_id=game.owner_id,
                player_id=stream["player_id"],
            ))
        return rows

    async def insert_game(self, guid: str, owner_id: Optional[int] = None) -> GameRow:
        if any(game.guid == guid for game in self._games.values()):
            raise PersistenceError("insert_game", f"guid {guid} already exists")
        row = GameRow(id=self._next_game_id, guid=guid, owner_id=owner_id)
        self._games[row.id] = row
        self._next_game_id += 1
        return row

    async def delete_game(self, game_id: int) -> None:
        self._games.pop(game_id, None)
        for key in [key for key in self._streams if key[0] == game_id]:
            del self._streams[key]

    async def insert_stream(
        self, game_id: int, stream_id: int, language: int, active: bool, value: str
    ) -> int:
        if game_id not in self._games:
            raise PersistenceError("insert_stream", f"game {game_id} does not exist")
        if (game_id, stream_id) in self._streams:
            raise PersistenceError("insert_stream", f"stream {stream_id} of game {game_id} already exists")
        self._streams[(game_id, stream_id)] = {
            "language": language,
            "active": active,
            "value": value,
            "player_id": None,
        }
        return stream_id

    async def update_stream_value(self, game_id: int, stream_id: int, value: str) -> None:
        self._stream(game_id, stream_id, "update_stream_value")["value"] = value

    async def set_stream_player(self, game_id: int, stream_id: int, player_id: Optional[int]) -> None:
        self._stream(game_id, stream_id, "set_stream_player")["player_id"] = player_id

    async def is_guid_used(self, guid: str) -> bool:
        return any(game.guid == guid for game in self._games.values())

    async def find_account(self, username_or_id: Union[str, int]) -> Optional[AccountRow]:
        if isinstance(username_or_id, int):
            return self._accounts.get(username_or_id)
        wanted = username_or_id.lower()
        return next(
            (account for account in self._accounts.values() if account.username.lower() == wanted),
            None,
        )

    async def create_account(self, username: str, password_hash: str) -> AccountRow:
        if await self.find_account(username):
            raise AccountExistsError(username)
        row = AccountRow(id=self._next_account_id, username=username, password_hash=password_hash)
        self._accounts[row.id] = row
        self._next_account_id += 1
        return row

    async def close(self) -> None:
        return None

    def _stream(self, game_id: int, stream_id: int, operation: str) -> dict:
        stream = self._streams.get((game_id, stream_id))
        if stream is None:
            raise PersistenceError(operation, f"stream {stream_id} of game {game_id} does not exist")
        return stream
