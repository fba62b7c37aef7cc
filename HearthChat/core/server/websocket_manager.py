"""
ChatServer: drives every connection through its lifecycle.

    CONNECTING ──auth ok──▶ AUTHENTICATED ──history pushed──▶ OPEN ──close/error──▶ CLOSED
         │
         └──auth failed──▶ CLOSED (HTTP 403, the WebSocket never opens)

Authentication happens during the opening handshake, so a refused client
never receives a frame. Once open, the first frame carries the whole
history. Every later frame carries exactly one newly stored record, which
is also how the author learns that their message was accepted.

A single sequencing lock covers both "read history + register" and
"append + broadcast". A record is therefore either part of a newcomer's
history or queued to it after the history frame, never both and never
neither.
"""

import asyncio
import http
import logging
import time
import weakref
from contextlib import asynccontextmanager
from typing import Optional, Union

import websockets
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.http11 import Request, Response

from HearthChat.config import config
from HearthChat.core.exceptions import StoreError
from HearthChat.core.message.protocol import decode_client_frame, encode_frame
from HearthChat.core.server.auth import CredentialAuthenticator, create_authenticator, latin1_view
from HearthChat.core.server.directory import User, UserDirectory
from HearthChat.core.server.interfaces import MessageStore
from HearthChat.core.server.storage_sqlite import MessageLog, SQLiteStore
from HearthChat.core.server.transport import WebSocketConnection, WebSocketConnectionRegistry

logger = logging.getLogger(__name__)


def cookie_header(request: Request) -> Optional[str]:
    """The handshake's Cookie header(s) in Latin-1 view, or None."""
    values = request.headers.get_all("Cookie")
    if not values:
        return None
    return latin1_view("; ".join(values))


class ChatServer:
    """
    The single global chat room.

    Example:
        server = create_server("hearthchat.db")
        async with server.run("localhost", 8765):
            await asyncio.Future()
    """

    def __init__(
        self,
        authenticator: CredentialAuthenticator,
        store: MessageStore,
        registry: Optional[WebSocketConnectionRegistry] = None
    ):
        """
        Args:
            authenticator: Resolves handshake cookies into users
            store: Message log returning encoded records
            registry: Live connection registry (creates one if None)
        """
        self._authenticator = authenticator
        self._store = store
        self._registry = registry or WebSocketConnectionRegistry()
        self._sequence_lock = asyncio.Lock()
        self._handshake_users: "weakref.WeakKeyDictionary[ServerConnection, User]" = weakref.WeakKeyDictionary()
        self._server: Optional[Server] = None

    @property
    def registry(self) -> WebSocketConnectionRegistry:
        return self._registry

    @property
    def authenticator(self) -> CredentialAuthenticator:
        return self._authenticator

    @property
    def server(self) -> Optional[Server]:
        return self._server

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self, host: str = "localhost", port: int = 8765) -> None:
        self._server = await serve(
            self._handle_connection,
            host,
            port,
            process_request=self._process_request,
        )
        logger.info("WebSocket server started on ws://%s:%s", host, port)

    async def stop(self) -> None:
        for connection in self._registry:
            await connection.close()
            self._registry.remove(connection)
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        logger.info("WebSocket server stopped")

    @asynccontextmanager
    async def run(self, host: str = "localhost", port: int = 8765):
        """Run the server for the duration of the context."""
        await self.start(host, port)
        try:
            yield self
        finally:
            await self.stop()

    # ------------------------------------------------------------------
    # CONNECTING -> AUTHENTICATED | CLOSED
    # ------------------------------------------------------------------
    async def _process_request(self, websocket: ServerConnection, request: Request) -> Optional[Response]:
        """Authenticate the handshake; a 403 response refuses it."""
        result = await self._authenticator.authenticate(cookie_header(request))
        if not result.success:
            return websocket.respond(http.HTTPStatus.FORBIDDEN, "Forbidden\n")
        self._handshake_users[websocket] = result.user
        return None

    # ------------------------------------------------------------------
    # AUTHENTICATED -> OPEN -> CLOSED
    # ------------------------------------------------------------------
    async def _handle_connection(self, websocket: ServerConnection) -> None:
        user = self._handshake_users.pop(websocket, None)
        if user is None:
            await websocket.close(1008, "Unauthenticated")
            return

        connection = WebSocketConnection(websocket, user)
        try:
            if not await self.open_connection(connection):
                await websocket.close(1011, "History unavailable")
                return
            async for raw_frame in websocket:
                await self.handle_frame(connection, raw_frame)
        except websockets.exceptions.ConnectionClosed:
            logger.debug("Connection closed for %s", user.username)
        except Exception:
            logger.exception("Error handling connection for %s", user.username)
        finally:
            await self.close_connection(connection)

    async def open_connection(self, connection: WebSocketConnection) -> bool:
        """
        Register the connection and queue the full history as its first frame.

        Returns:
            False if the history could not be read; the connection is then
            left unregistered.
        """
        async with self._sequence_lock:
            try:
                history = await self._store.query()
            except StoreError:
                return False
            self._registry.add(connection)
            connection.start()
            connection.send(encode_frame(history))
        logger.info("New connection from %s (%d connections open)", connection.user.username, len(self._registry))
        return True

    async def handle_frame(self, connection: WebSocketConnection, raw_frame: Union[str, bytes]) -> Optional[str]:
        """
        Store one client frame and broadcast the resulting record.

        Returns:
            The broadcast record, or None when the frame was discarded or
            the store failed
        """
        if isinstance(raw_frame, bytes):
            raw_frame = raw_frame.decode("utf-8", "replace")
        frame = decode_client_frame(raw_frame)
        if frame.is_empty:
            return None

        user = connection.user
        timestamp = int(time.time() * 1000)
        if frame.reply_id is None:
            logger.info("New message from %s", user.username)
        else:
            logger.info("New message from %s in reply to message %s", user.username, frame.reply_id)

        async with self._sequence_lock:
            try:
                record = await self._store.append(frame.reply_id, user.id, frame.content, timestamp)
            except StoreError:
                return None
            delivered = self._registry.broadcast(record)
        logger.debug("Broadcast record to %d connections", delivered)
        return record

    async def close_connection(self, connection: WebSocketConnection) -> None:
        was_registered = self._registry.remove(connection)
        await connection.close()
        if was_registered:
            logger.info("Connection closed for %s (%d connections open)", connection.user.username, len(self._registry))


def create_server(db_path: str = None, session_tokens: bool = None) -> ChatServer:
    """
    Wire a ChatServer to a sqlite database.

    The user directory is read once here and never reloaded.
    """
    store = SQLiteStore(db_path or config.SQLITE_DB_FILE)
    directory = UserDirectory.from_rows(store.load_users())
    authenticator = create_authenticator(directory, session_tokens)
    return ChatServer(authenticator, MessageLog(store, directory))
