"""In-memory document state for live games.

The document store holds these records for the lifetime of the process; the
ORM rows in game.py only mirror the current value of each stream.
"""
from dataclasses import dataclass, field
from typing import Optional

from livecode.schemas.protocol import RangeEdit
from livecode.schemas.enums import PushKind


@dataclass(frozen=True)
class StreamSpec:
    """Requested initial state of a new stream."""
    language: int
    active: bool = True
    value: str = ""


@dataclass(frozen=True)
class ChangeRecord:
    """An accepted edit of one stream, tagged with its sequence number."""
    game: str
    stream: int
    operations: tuple[RangeEdit, ...]
    sequence: int
    origin: Optional[str] = None  # connection id, used only to skip the echo

    def to_payload(self) -> dict:
        return {
            "type": PushKind.CHANGE.value,
            "game": self.game,
            "stream": self.stream,
            "operations": [operation.to_payload() for operation in self.operations],
            "sequence": self.sequence,
            "origin": self.origin,
        }


@dataclass
class StreamState:
    """Authoritative current value of one stream."""
    game: str  # game guid
    id: int  # unique within the game only
    language: int
    active: bool = True
    value: str = ""
    change_count: int = 0
    last_change: Optional[ChangeRecord] = None
    player_id: Optional[int] = None

    @property
    def next_sequence(self) -> int:
        return self.change_count + 1

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "language": self.language,
            "active": self.active,
            "value": self.value,
            "sequence": self.next_sequence,
            "player_id": self.player_id,
        }


@dataclass
class GameState:
    """A game and its streams keyed by per-game stream id."""
    id: int  # persistence primary key
    guid: str
    owner_id: Optional[int] = None
    streams: dict[int, StreamState] = field(default_factory=dict)

    def to_dict(self, include_values: bool = True) -> dict:
        streams = [self.streams[key] for key in sorted(self.streams)]
        return {
            "guid": self.guid,
            "owner_id": self.owner_id,
            "streams": [
                stream.to_dict() if include_values else {"id": stream.id, "language": stream.language, "active": stream.active}
                for stream in streams
            ],
        }


@dataclass
class Subscription:
    """Streams of one game a connection listens to."""
    connection_id: str
    game: str
    streams: frozenset[int] = frozenset()

    def includes(self, game: str, stream: int) -> bool:
        return self.game == game and stream in self.streams
