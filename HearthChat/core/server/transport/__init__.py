"""
Transport layer for WebSocket connections.

`WebSocketConnection` wraps a websockets ServerConnection together with the
authenticated user. Frames are queued on an outbox drained by one writer
task, so each connection receives frames in the order they were queued
while a slow client never holds up the others.

`WebSocketConnectionRegistry` owns the set of live connections and fans
frames out to them.
"""

import asyncio
import logging
import uuid
from typing import Dict, Iterator, Optional

import websockets
from websockets.asyncio.server import ServerConnection
from websockets.protocol import State

from HearthChat.config import config
from HearthChat.core.server.directory import User
from HearthChat.core.server.interfaces import ConnectionRegistry, ConnectionState

logger = logging.getLogger(__name__)


class WebSocketConnection:
    """
    One authenticated connection.

    `send()` only queues; it never awaits the network and never raises.
    Once the connection is closed, sending is a silent no-op.
    """

    def __init__(self, websocket: ServerConnection, user: User, max_pending: int = None):
        """
        Args:
            websocket: Underlying WebSocket connection
            user: Identity resolved during the handshake
            max_pending: Queued frames allowed before the client is
                dropped as too slow (default: config.OUTBOX_MAX_FRAMES)
        """
        self._websocket = websocket
        self._user = user
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=max_pending or config.OUTBOX_MAX_FRAMES)
        self._writer: Optional[asyncio.Task] = None
        self._closer: Optional[asyncio.Task] = None
        self.state = ConnectionState.AUTHENTICATED
        self.conn_id: str = uuid.uuid4().hex

    @property
    def user(self) -> User:
        return self._user

    @property
    def raw_websocket(self) -> ServerConnection:
        return self._websocket

    def start(self) -> None:
        """Start the writer task and mark the connection open."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name=f"writer-{self.conn_id}")
        self.state = ConnectionState.OPEN

    def is_open(self) -> bool:
        if self.state is not ConnectionState.OPEN:
            return False
        return getattr(self._websocket, "state", State.OPEN) is State.OPEN

    def send(self, frame: str) -> bool:
        """
        Queue a frame for delivery.

        A client whose outbox is full is closed with 1013 (try again later).

        Returns:
            False if the frame was dropped: the connection is not open or
            its outbox overflowed
        """
        if not self.is_open():
            return False
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("Outbox full for %s (%s), dropping slow client", self._user.username, self.conn_id)
            self.state = ConnectionState.CLOSED
            self._closer = asyncio.create_task(self._websocket.close(1013, "Too slow"))
            return False
        return True

    async def _drain(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self._websocket.send(frame)
            except websockets.exceptions.ConnectionClosed:
                logger.debug("Connection %s closed while sending", self.conn_id)
                self.state = ConnectionState.CLOSED
                return
            except Exception:
                logger.exception("Failed to send to %s (%s)", self._user.username, self.conn_id)
                self.state = ConnectionState.CLOSED
                return

    async def close(self) -> None:
        """
        Mark the connection closed and stop the writer.

        Frames still queued are dropped.
        """
        self.state = ConnectionState.CLOSED
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None


class WebSocketConnectionRegistry(ConnectionRegistry):
    """
    Registry of live connections.

    All methods are synchronous; under the single event loop that makes
    add, remove and broadcast atomic with respect to each other.
    """

    def __init__(self):
        self._connections: Dict[str, WebSocketConnection] = {}

    def add(self, connection: WebSocketConnection) -> None:
        self._connections[connection.conn_id] = connection
        logger.debug("Registered connection %s for %s", connection.conn_id, connection.user.username)

    def remove(self, connection: WebSocketConnection) -> bool:
        """Remove a connection; False if it was not registered."""
        return self._connections.pop(connection.conn_id, None) is not None

    def broadcast(self, frame: str) -> int:
        """
        Queue a frame on every open connection.

        Closed or closing connections are skipped.

        Returns:
            Number of connections the frame was queued for
        """
        delivered = 0
        for connection in list(self._connections.values()):
            if connection.send(frame):
                delivered += 1
        return delivered

    def __iter__(self) -> Iterator[WebSocketConnection]:
        return iter(list(self._connections.values()))

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        return isinstance(connection, WebSocketConnection) and connection.conn_id in self._connections
