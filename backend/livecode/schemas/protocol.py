"""Synchronization protocol schemas.

Inbound frames are JSON objects with a `type` field. Outbound frames are
built here too so every payload shape lives in one module.
"""
import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from livecode.core.exceptions import (
    MalformedMessageError,
    MissingRequiredFieldError,
    UnknownMessageKindError,
)
from .enums import MessageKind, PushKind


class EditRange(BaseModel):
    """1-indexed line/column range, end column exclusive."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    start_line: int = Field(..., ge=1, alias="startLineNumber")
    start_column: int = Field(..., ge=1, alias="startColumn")
    end_line: int = Field(..., ge=1, alias="endLineNumber")
    end_column: int = Field(..., ge=1, alias="endColumn")


class RangeEdit(BaseModel):
    """Replace the text inside `range` with `text`."""
    model_config = ConfigDict(frozen=True)

    range: EditRange
    text: str = ""

    @classmethod
    def replace(cls, start_line: int, start_column: int, end_line: int, end_column: int, text: str) -> "RangeEdit":
        """Build an edit from plain coordinates."""
        return cls(
            range=EditRange(
                start_line=start_line,
                start_column=start_column,
                end_line=end_line,
                end_column=end_column,
            ),
            text=text,
        )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class SubscribeMessage(BaseModel):
    """Listen to a set of streams of one game."""
    type: Literal["subscribe"] = "subscribe"
    game: str = Field(..., min_length=1)
    streams: list[int]

    @field_validator("streams", mode="before")
    @classmethod
    def _accept_stream_objects(cls, value: Any) -> Any:
        # Clients may send [{"id": 1}, ...] as well as [1, ...]
        if isinstance(value, list):
            return [item.get("id") if isinstance(item, dict) else item for item in value]
        return value


class FetchMessage(BaseModel):
    """Request the full value of one stream."""
    type: Literal["fetch"] = "fetch"
    game: str = Field(..., min_length=1)
    stream: int


class LatestMessage(BaseModel):
    """Request the most recent change of one stream."""
    type: Literal["latest"] = "latest"
    game: str = Field(..., min_length=1)
    stream: int


class ChangeMessage(BaseModel):
    """Apply range edits to one stream."""
    type: Literal["change"] = "change"
    game: str = Field(..., min_length=1)
    stream: int
    changes: list[RangeEdit]


class PongMessage(BaseModel):
    """Liveness acknowledgment."""
    type: Literal["pong"] = "pong"


ClientMessage = Union[SubscribeMessage, FetchMessage, LatestMessage, ChangeMessage, PongMessage]

MESSAGE_MODELS: dict[MessageKind, type[BaseModel]] = {
    MessageKind.SUBSCRIBE: SubscribeMessage,
    MessageKind.FETCH: FetchMessage,
    MessageKind.LATEST: LatestMessage,
    MessageKind.CHANGE: ChangeMessage,
    MessageKind.PONG: PongMessage,
}


def parse_client_message(raw: Union[str, bytes], max_bytes: Optional[int] = None) -> ClientMessage:
    """Parse one inbound frame.

    Raises:
        MalformedMessageError: frame is oversized, not JSON, or not an object
        UnknownMessageKindError: `type` is missing or unsupported
        MissingRequiredFieldError: fields required by the kind are absent or invalid
    """
    if max_bytes is not None:
        size = len(raw.encode("utf-8")) if isinstance(raw, str) else len(raw)
        if size > max_bytes:
            raise MalformedMessageError(f"frame exceeds {max_bytes} bytes")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
        raise MalformedMessageError(f"bad json: {e}") from e
    if not isinstance(data, dict):
        raise MalformedMessageError("message must be an object")

    kind_value = data.get("type")
    try:
        kind = MessageKind(kind_value)
    except ValueError:
        raise UnknownMessageKindError(kind_value) from None

    try:
        return MESSAGE_MODELS[kind].model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(part) for part in error["loc"]) or "type" for error in e.errors()})
        raise MissingRequiredFieldError(kind.value, fields) from e


def value_push(game: str, stream: int, value: str, sequence: int) -> dict:
    """Full current value of a stream, sent only to the requester."""
    return {
        "type": PushKind.VALUE.value,
        "game": game,
        "stream": stream,
        "value": value,
        "sequence": sequence,
    }


def ping_frame() -> dict:
    return {"type": PushKind.PING.value}


def pong_frame() -> dict:
    return {"type": PushKind.PONG.value}
