"""
Server startup module for HearthChat application.
Runs the WebSocket server and, unless asked not to, the HTTP surface.
"""

import asyncio
import logging
import threading

from HearthChat.config import config
from HearthChat.core.server import create_server
from HearthChat.web import create_app, run as run_http

logger = logging.getLogger(__name__)


def server(host=None, port=None, db_path=None, srv_only=False):
    """
    Start the chat server.

    Args:
        host (str): Interface to bind (default: config.DEFAULT_HOST)
        port (int): WebSocket port; HTTP listens on port + 1
        db_path (str): sqlite database file (default: config.SQLITE_DB_FILE)
        srv_only (bool): If True, serve the WebSocket server only
    """
    host = host or config.DEFAULT_HOST
    port = port or config.DEFAULT_SERVER_PORT

    chat_server = create_server(db_path)

    if not srv_only:
        app = create_app(chat_server.authenticator)
        http_thread = threading.Thread(
            target=run_http, args=(app, host, port + 1), daemon=True, name="http"
        )
        http_thread.start()

    async def serve_forever():
        async with chat_server.run(host, port):
            await asyncio.Future()

    try:
        asyncio.run(serve_forever())
    except KeyboardInterrupt:
        logger.info("Closed by user.")
