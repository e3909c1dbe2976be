"""Synchronization server - connection registry, dispatch and fan-out.

The server never touches the document or subscription maps directly; every
lookup and mutation goes through the DocumentStore it was constructed with.
It is transport-agnostic: the WebSocket endpoint wraps each socket in a
Transport adapter and feeds inbound text frames to handle_text().
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol

from livecode.core.exceptions import InvalidRangeError, ProtocolException, UnknownStreamError
from livecode.schemas.enums import ConnectionState, MessageKind
from livecode.schemas.protocol import (
    ChangeMessage,
    ClientMessage,
    FetchMessage,
    LatestMessage,
    PongMessage,
    SubscribeMessage,
    parse_client_message,
    ping_frame,
    pong_frame,
    value_push,
)
from livecode.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_INTERNAL_ERROR = 1011
CLOSE_TRY_AGAIN_LATER = 1013


class Transport(Protocol):
    """What the server needs from one live socket."""

    async def send_json(self, data: dict) -> None: ...

    async def close(self, code: int = CLOSE_NORMAL) -> None: ...


@dataclass
class Connection:
    """One live transport session."""
    transport: Transport
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: ConnectionState = ConnectionState.CONNECTED
    alive: bool = True


class SyncServer:
    """Dispatches protocol messages and pushes changes to subscribers."""

    def __init__(
        self,
        store: DocumentStore,
        heartbeat_interval: float = 30.0,
        max_connections: int = 500,
        max_message_bytes: Optional[int] = None,
    ):
        self.store = store
        self.heartbeat_interval = heartbeat_interval
        self.max_connections = max_connections
        self.max_message_bytes = max_message_bytes
        self.connections: dict[str, Connection] = {}
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._handlers: dict[MessageKind, Callable[[Connection, ClientMessage], Awaitable[None]]] = {
            MessageKind.SUBSCRIBE: self._on_subscribe,
            MessageKind.FETCH: self._on_fetch,
            MessageKind.LATEST: self._on_latest,
            MessageKind.CHANGE: self._on_change,
            MessageKind.PONG: self._on_pong,
        }

    # ---------- lifecycle ----------

    async def start(self) -> None:
        """Start the heartbeat loop."""
        if self._heartbeat_task is None:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
            logger.info(f"Sync server started (heartbeat every {self.heartbeat_interval}s)")

    async def stop(self) -> None:
        """Cancel the heartbeat loop and close every open connection."""
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None

        for connection in list(self.connections.values()):
            await self._terminate(connection, CLOSE_GOING_AWAY)
        logger.info("Sync server stopped")

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.check_liveness()
            except Exception as e:
                logger.error(f"Liveness check failed: {e}", exc_info=True)

    # ---------- connections ----------

    async def connect(self, transport: Transport) -> Optional[Connection]:
        """Register a transport; returns None when the server is full."""
        total = len(self.connections)
        if total >= self.max_connections:
            logger.warning(f"Global connection limit reached ({total}). Rejecting connection")
            await transport.close(code=CLOSE_TRY_AGAIN_LATER)
            return None

        connection = Connection(transport=transport)
        self.connections[connection.id] = connection
        logger.info(f"Connection {connection.id} opened. Total connections: {len(self.connections)}")
        return connection

    def disconnect(self, connection_id: str) -> None:
        """Forget a connection and its subscription. Safe to call twice."""
        connection = self.connections.pop(connection_id, None)
        self.store.remove_subscription(connection_id)
        if connection is None:
            return
        connection.state = ConnectionState.CLOSED
        logger.info(f"Connection {connection_id} closed. Total connections: {len(self.connections)}")

    async def _terminate(self, connection: Connection, code: int) -> None:
        self.disconnect(connection.id)
        try:
            await connection.transport.close(code=code)
        except Exception as e:
            logger.debug(f"Closing connection {connection.id} failed: {e}")

    async def _send(self, connection: Connection, data: dict) -> bool:
        """Send one frame; a failed send terminates the connection."""
        try:
            await connection.transport.send_json(data)
            return True
        except Exception as e:
            logger.error(f"Failed to send to connection {connection.id}: {e}")
            await self._terminate(connection, CLOSE_INTERNAL_ERROR)
            return False

    # ---------- inbound ----------

    async def handle_text(self, connection: Connection, raw: str) -> None:
        """Process one inbound frame. Errors stay local to the connection."""
        connection.alive = True

        if raw == "ping":
            await self._send(connection, pong_frame())
            return

        try:
            message = parse_client_message(raw, self.max_message_bytes)
            await self._handlers[MessageKind(message.type)](connection, message)
        except ProtocolException as e:
            logger.warning(f"Ignoring frame from {connection.id}: {e.message}")
        except UnknownStreamError as e:
            logger.info(f"Ignoring message from {connection.id}: {e.message}")
        except InvalidRangeError as e:
            logger.error(f"Rejected change from {connection.id}: {e.message}")

    async def _on_subscribe(self, connection: Connection, message: SubscribeMessage) -> None:
        stream_ids = self.store.add_subscription(connection.id, message.game, message.streams)
        connection.state = ConnectionState.SUBSCRIBED
        for stream_id in stream_ids:
            stream = self.store.get_stream(message.game, stream_id)
            if stream is None:
                continue
            sequence = self.store.next_sequence(message.game, stream_id)
            if not await self._send(connection, value_push(message.game, stream_id, stream.value, sequence)):
                return

    async def _on_fetch(self, connection: Connection, message: FetchMessage) -> None:
        stream = self.store.get_stream(message.game, message.stream)
        if stream is None:
            raise UnknownStreamError(message.game, message.stream)
        sequence = self.store.next_sequence(message.game, message.stream)
        await self._send(connection, value_push(message.game, message.stream, stream.value, sequence))

    async def _on_latest(self, connection: Connection, message: LatestMessage) -> None:
        if not self.store.stream_exists(message.game, message.stream):
            raise UnknownStreamError(message.game, message.stream)
        record = self.store.latest_change(message.game, message.stream)
        if record is None:
            logger.debug(f"No change recorded yet for stream {message.stream} of game {message.game}")
            return
        await self._send(connection, record.to_payload())

    async def _on_change(self, connection: Connection, message: ChangeMessage) -> None:
        record = self.store.apply_change(message.game, message.stream, message.changes, origin=connection.id)
        if record is None:
            return

        payload = record.to_payload()
        recipients = [
            other
            for other in list(self.connections.values())
            if other.id != connection.id and self.store.is_subscribed(other.id, message.game, message.stream)
        ]
        if recipients:
            await asyncio.gather(*(self._send(other, payload) for other in recipients))
        logger.debug(
            f"Change {record.sequence} on stream {message.stream} of game {message.game} "
            f"sent to {len(recipients)} connection(s)"
        )

    async def _on_pong(self, connection: Connection, message: PongMessage) -> None:
        connection.alive = True

    # ---------- liveness ----------

    async def check_liveness(self) -> None:
        """Run one liveness round.

        A connection that has not acknowledged since the previous round is
        closed. Everyone else is marked unacknowledged and probed; a probe
        that cannot be sent closes the connection immediately.
        """
        for connection in list(self.connections.values()):
            if connection.id not in self.connections:
                continue
            if not connection.alive:
                logger.warning(f"Connection {connection.id} missed a heartbeat, closing")
                await self._terminate(connection, CLOSE_GOING_AWAY)
                continue
            connection.alive = False
            await self._send(connection, ping_frame())

    @property
    def connection_count(self) -> int:
        return len(self.connections)
