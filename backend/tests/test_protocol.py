"""Tests for inbound frame parsing and outbound frame shapes."""
import json

import pytest

from livecode.core.exceptions import (
    MalformedMessageError,
    MissingRequiredFieldError,
    UnknownMessageKindError,
)
from livecode.schemas.protocol import (
    ChangeMessage,
    FetchMessage,
    LatestMessage,
    PongMessage,
    RangeEdit,
    SubscribeMessage,
    parse_client_message,
    value_push,
)


class TestParseClientMessage:
    """Tests for parse_client_message."""

    def test_subscribe(self):
        message = parse_client_message(json.dumps({"type": "subscribe", "game": "g1", "streams": [1, 2]}))
        assert isinstance(message, SubscribeMessage)
        assert message.game == "g1"
        assert message.streams == [1, 2]

    def test_subscribe_accepts_stream_objects(self):
        message = parse_client_message(json.dumps({"type": "subscribe", "game": "g1", "streams": [{"id": 3}]}))
        assert message.streams == [3]

    def test_fetch_and_latest(self):
        fetch = parse_client_message('{"type": "fetch", "game": "g1", "stream": 1}')
        latest = parse_client_message('{"type": "latest", "game": "g1", "stream": 1}')
        assert isinstance(fetch, FetchMessage)
        assert isinstance(latest, LatestMessage)

    def test_change_uses_editor_range_names(self):
        raw = json.dumps({
            "type": "change",
            "game": "g1",
            "stream": 1,
            "changes": [{
                "range": {"startLineNumber": 1, "startColumn": 1, "endLineNumber": 1, "endColumn": 1},
                "text": "hi",
            }],
        })
        message = parse_client_message(raw)
        assert isinstance(message, ChangeMessage)
        assert message.changes == [RangeEdit.replace(1, 1, 1, 1, "hi")]

    def test_pong(self):
        assert isinstance(parse_client_message('{"type": "pong"}'), PongMessage)

    def test_bytes_frame(self):
        message = parse_client_message(b'{"type": "fetch", "game": "g1", "stream": 2}')
        assert message.stream == 2

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"text"', "{"])
    def test_malformed(self, raw):
        with pytest.raises(MalformedMessageError):
            parse_client_message(raw)

    def test_oversized_frame(self):
        raw = json.dumps({"type": "fetch", "game": "g" * 100, "stream": 1})
        with pytest.raises(MalformedMessageError):
            parse_client_message(raw, max_bytes=32)

    def test_size_limit_counts_encoded_bytes(self):
        raw = json.dumps({"type": "pong", "pad": "é" * 20}, ensure_ascii=False)
        assert len(raw) <= 48 < len(raw.encode("utf-8"))
        with pytest.raises(MalformedMessageError):
            parse_client_message(raw, max_bytes=48)

    def test_deeply_nested_frame_is_malformed(self):
        with pytest.raises(MalformedMessageError):
            parse_client_message("[" * 200000 + "]" * 200000)

    @pytest.mark.parametrize("raw", ['{"game": "g1"}', '{"type": "explode"}', '{"type": 5}'])
    def test_unknown_kind(self, raw):
        with pytest.raises(UnknownMessageKindError):
            parse_client_message(raw)

    def test_missing_fields_are_listed(self):
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            parse_client_message('{"type": "change", "game": "g1"}')
        assert exc_info.value.details["kind"] == "change"
        assert "stream" in exc_info.value.details["fields"]
        assert "changes" in exc_info.value.details["fields"]

    def test_zero_coordinates_rejected(self):
        raw = json.dumps({
            "type": "change",
            "game": "g1",
            "stream": 1,
            "changes": [{"range": {"startLineNumber": 0, "startColumn": 1, "endLineNumber": 1, "endColumn": 1}}],
        })
        with pytest.raises(MissingRequiredFieldError):
            parse_client_message(raw)


class TestOutboundFrames:

    def test_value_push(self):
        assert value_push("g1", 2, "body", 5) == {
            "type": "value",
            "game": "g1",
            "stream": 2,
            "value": "body",
            "sequence": 5,
        }

    def test_range_edit_payload_uses_editor_names(self):
        payload = RangeEdit.replace(1, 2, 3, 4, "x").to_payload()
        assert payload == {
            "range": {"startLineNumber": 1, "startColumn": 2, "endLineNumber": 3, "endColumn": 4},
            "text": "x",
        }
