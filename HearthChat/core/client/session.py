"""
Client session: the state a HearthChat client keeps between frames.

The session owns the local message cache and the rendered view, the
pending reply target, and the connection loop. It mirrors what the browser
page does:

- The first frame after every (re)connect is the full history and replaces
  the cache and the view. A frame with more than one record is also
  treated as a replacement; any other frame appends its record.
- When the connection drops, sending is disabled and a new connection is
  attempted straight away, with no backoff and no retry cap. Only a
  refused handshake (bad credentials) ends the loop.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidMessage, InvalidStatus

from HearthChat.core.client.ui.message_buffer import MessageCache
from HearthChat.core.client.ui.renderer import HtmlRenderer, MessageRenderer
from HearthChat.core.exceptions import AuthenticationRefused, ProtocolError
from HearthChat.core.message.protocol import Message, decode_frame, encode_client_frame
from HearthChat.core.server.auth import header_value

logger = logging.getLogger(__name__)

LOGOUT_COMMAND = "!logout"

# Called with (session, newly rendered messages, whether the view was replaced)
UpdateListener = Callable[['ClientSession', List[Message], bool], None]


class ClientSession:
    """
    One user's view of the chat room.

    Attributes:
        cache: Messages received so far, keyed by id
        view: Rendered markup, one entry per cached message, same order
        pending_reply: Id the next message will reply to, if any
        reply_preview: Rendered preview of the pending reply target
    """

    def __init__(
        self,
        uri: str,
        username: str,
        password: str,
        renderer: Optional[MessageRenderer] = None,
        on_update: Optional[UpdateListener] = None,
        reconnect_delay: float = 0.0
    ):
        """
        Args:
            uri: ws:// or wss:// address of the server
            username: Login name sent in the Cookie header
            password: Password sent in the Cookie header
            renderer: Produces the view entries (HtmlRenderer by default)
            on_update: Listener notified after every applied frame
            reconnect_delay: Seconds to wait before reconnecting
        """
        self.uri = uri
        self.username: Optional[str] = username
        self.password: Optional[str] = password
        self.renderer = renderer or HtmlRenderer()
        self.on_update = on_update
        self.reconnect_delay = reconnect_delay

        self.cache = MessageCache()
        self.view: List[str] = []
        self.pending_reply: Optional[int] = None
        self.reply_preview: Optional[str] = None

        self._websocket: Optional[ClientConnection] = None
        self._awaiting_history = True
        self._running = False

    @property
    def can_send(self) -> bool:
        """True only while a connection is open."""
        return self._websocket is not None

    @property
    def cookie_header(self) -> str:
        """The credentials as a Cookie header value, UTF-8 on the wire."""
        return header_value(f"username={self.username}; password={self.password}")

    # ------------------------------------------------------------------
    # Incoming frames
    # ------------------------------------------------------------------
    def handle_frame(self, frame: str) -> List[Message]:
        """
        Apply one server frame to the cache and the view.

        Returns:
            The messages that were added
        """
        try:
            messages = decode_frame(frame)
        except ProtocolError as e:
            logger.warning("Ignoring malformed frame: %s", e)
            return []

        replace = self._awaiting_history or len(messages) > 1
        self._awaiting_history = False
        if replace:
            self.cache.clear()
            self.view.clear()

        added = []
        for message in messages:
            if not self.cache.add(message):
                logger.debug("Skipping duplicate message %s", message.id)
                continue
            self.view.append(self.renderer.render_message(message, self.cache))
            added.append(message)

        if self.on_update is not None:
            self.on_update(self, added, replace)
        return added

    # ------------------------------------------------------------------
    # Reply composition and sending
    # ------------------------------------------------------------------
    def set_reply(self, message_id: Optional[int]) -> None:
        """Choose the message the next send replies to, or clear it with None."""
        self.pending_reply = message_id
        if message_id is None:
            self.reply_preview = None
            return
        self.reply_preview = self.renderer.render_reply_preview(self.cache.get(message_id))

    async def send(self, content: str) -> bool:
        """
        Send a message, replying to the pending target if one is set.

        Returns:
            False if nothing was sent: sending is disabled, the content is
            empty, or the content was the logout command
        """
        if content == LOGOUT_COMMAND:
            await self.logout()
            return False
        if content == "" or self._websocket is None:
            return False
        try:
            await self._websocket.send(encode_client_frame(self.pending_reply, content))
        except ConnectionClosed:
            logger.info("Connection closed before the message was sent")
            return False
        self.set_reply(None)
        return True

    async def logout(self) -> None:
        """Forget the credentials and end the session."""
        self.username = None
        self.password = None
        await self.stop()

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------
    def _on_open(self, websocket: ClientConnection) -> None:
        self._websocket = websocket
        self._awaiting_history = True
        logger.info("Connected to %s", self.uri)

    def _on_close(self) -> None:
        self._websocket = None

    async def run(self) -> None:
        """
        Connect and keep reconnecting until `stop()` or a refused handshake.

        Raises:
            AuthenticationRefused: the server answered the handshake with 403
        """
        self._running = True
        while self._running:
            try:
                async with connect(self.uri, additional_headers={"Cookie": self.cookie_header}) as websocket:
                    self._on_open(websocket)
                    # stop() may have run while the handshake was in flight
                    if not self._running:
                        break
                    async for frame in websocket:
                        if isinstance(frame, bytes):
                            frame = frame.decode("utf-8", "replace")
                        self.handle_frame(frame)
            except InvalidStatus as e:
                status = e.response.status_code
                if status == 403:
                    if not self._running:
                        break
                    self._running = False
                    raise AuthenticationRefused(status) from e
                logger.warning("Handshake rejected with HTTP %s, reconnecting", status)
            except (InvalidHandshake, InvalidMessage) as e:
                logger.warning("Handshake failed (%s), reconnecting", e)
            except (ConnectionClosed, OSError, asyncio.TimeoutError) as e:
                logger.info("Connection lost (%s), reconnecting", e)
            finally:
                self._on_close()
            if self._running and self.reconnect_delay:
                await asyncio.sleep(self.reconnect_delay)

    async def stop(self) -> None:
        self._running = False
        websocket = self._websocket
        if websocket is not None:
            await websocket.close()
