"""End-to-end tests for the synchronization WebSocket."""
from fastapi.testclient import TestClient

from livecode.api.dependencies import get_sync_server
from livecode.main import create_app
from livecode.services.document_store import DocumentStore
from livecode.services.sync_server import SyncServer
from livecode.storage.memory import InMemoryGamePersistence


def _create_game(client, streams) -> str:
    response = client.post("/api/games", json={"streams": streams})
    assert response.status_code == 201
    return response.json()["guid"]


def _change(game: str, stream: int, text: str) -> dict:
    return {
        "type": "change",
        "game": game,
        "stream": stream,
        "changes": [{
            "range": {"startLineNumber": 1, "startColumn": 1, "endLineNumber": 1, "endColumn": 1},
            "text": text,
        }],
    }


class TestSyncWebSocket:

    def test_subscribe_receives_current_value(self, client):
        guid = _create_game(client, [{"language": 1, "value": "<p>"}])

        with client.websocket_connect("/api/ws") as ws:
            ws.send_json({"type": "subscribe", "game": guid, "streams": [1]})
            assert ws.receive_json() == {"type": "value", "game": guid, "stream": 1, "value": "<p>", "sequence": 1}

    def test_change_reaches_subscriber_without_echo(self, client):
        guid = _create_game(client, [{"language": 1, "value": "world"}])

        with client.websocket_connect("/api/ws") as client_a, client.websocket_connect("/api/ws") as client_b:
            client_a.send_json({"type": "subscribe", "game": guid, "streams": [1]})
            assert client_a.receive_json()["type"] == "value"

            client_b.send_json(_change(guid, 1, "hi"))

            push = client_a.receive_json()
            assert push["type"] == "change"
            assert push["sequence"] == 1
            assert push["operations"][0]["text"] == "hi"

            # B hears only the answer to its own fetch, never its echo
            client_b.send_json({"type": "fetch", "game": guid, "stream": 1})
            fetched = client_b.receive_json()
            assert fetched["type"] == "value"
            assert fetched["value"].startswith("hi")
            assert fetched["sequence"] == 2

    def test_bad_frames_keep_connection_open(self, client):
        guid = _create_game(client, [{"language": 1}])

        with client.websocket_connect("/api/ws") as ws:
            ws.send_text("{not json")
            ws.send_json({"type": "teleport"})
            ws.send_json({"type": "fetch", "game": "missing", "stream": 1})
            ws.send_text("ping")
            assert ws.receive_json() == {"type": "pong"}

            ws.send_json({"type": "fetch", "game": guid, "stream": 1})
            assert ws.receive_json()["type"] == "value"

    def test_connection_cap_closes_extra_socket(self, test_settings):
        config = test_settings.model_copy(update={"MAX_TOTAL_CONNECTIONS": 0})
        app = create_app(config, InMemoryGamePersistence())

        with TestClient(app) as capped:
            with capped.websocket_connect("/api/ws") as ws:
                message = ws.receive()
                assert message["type"] == "websocket.close"
                assert message["code"] == 1013

    def test_open_socket_is_counted(self, client, test_app):
        with client.websocket_connect("/api/ws") as ws:
            ws.send_text("ping")
            assert ws.receive_json() == {"type": "pong"}
            assert test_app.state.sync_server.connection_count == 1

    def test_endpoint_uses_injected_sync_server(self, test_app):
        full = SyncServer(DocumentStore(InMemoryGamePersistence()), max_connections=0)
        test_app.dependency_overrides[get_sync_server] = lambda: full

        with TestClient(test_app) as overridden:
            with overridden.websocket_connect("/api/ws") as ws:
                assert ws.receive()["code"] == 1013
        assert test_app.state.sync_server.connection_count == 0
