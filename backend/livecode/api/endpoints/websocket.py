"""WebSocket endpoint for stream synchronization."""
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from livecode.api.dependencies import get_sync_server
from livecode.services.sync_server import CLOSE_NORMAL, SyncServer

logger = logging.getLogger(__name__)

router = APIRouter()


class WebSocketTransport:
    """Adapts a Starlette WebSocket to the sync server's Transport."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send_json(self, data: dict) -> None:
        await self.websocket.send_json(data)

    async def close(self, code: int = CLOSE_NORMAL) -> None:
        await self.websocket.close(code=code)


@router.websocket("/ws")
async def sync_websocket(websocket: WebSocket, server: SyncServer = Depends(get_sync_server)):
    """
    Synchronization endpoint.

    Message format (client -> server):
    {"type": "subscribe" | "fetch" | "latest" | "change" | "pong", ...}

    The server pushes "value", "change" and "ping" frames; a plain-text
    "ping" is answered with {"type": "pong"}.
    """
    await websocket.accept()

    connection = await server.connect(WebSocketTransport(websocket))
    if connection is None:
        return

    try:
        while True:
            data = await websocket.receive_text()
            await server.handle_text(connection, data)
    except WebSocketDisconnect:
        logger.info(f"Connection {connection.id} disconnected")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection.id}: {e}", exc_info=True)
    finally:
        server.disconnect(connection.id)
