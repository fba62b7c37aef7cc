"""
Client startup module for HearthChat application.
"""

import asyncio

from HearthChat.core.client import StandardCommandlineClient

__all__ = ['client']


def client(host="localhost", port=8765, username=None, secure=False):
    """
    Start the terminal client.

    Args:
        host (str): Server hostname to connect to (default: localhost)
        port (int): WebSocket port (default: 8765)
        username (str): Login name; prompted for when omitted
        secure (bool): Connect with wss://
    """
    print("Welcome to HearthChat!")
    print(f"Connecting to {host}:{port}")
    try:
        asyncio.run(StandardCommandlineClient(host, port, secure).run(username=username))
    except KeyboardInterrupt:
        print("Bye!")
