"""
Server module for HearthChat.

Components, leaf first:

1. **UserDirectory** (`directory.py`)
   - Immutable snapshot of registered users, loaded once at startup

2. **Authentication** (`auth/`)
   - CredentialAuthenticator: Cookie header -> User, or refusal
   - SessionTokenIssuer: optional signed session tokens

3. **Storage** (`storage_sqlite.py`)
   - SQLiteStore: users and messages tables
   - MessageLog: serializing async owner returning encoded records

4. **Transport Layer** (`transport/`)
   - WebSocketConnection: connection wrapper with an ordered outbox
   - WebSocketConnectionRegistry: live connections and fan-out

5. **ChatServer** (`websocket_manager.py`)
   - Per-connection lifecycle: handshake auth, history push,
     append-and-broadcast, teardown

Usage:

    from HearthChat.core.server import create_server

    server = create_server("hearthchat.db")
    async with server.run("localhost", 8765):
        await asyncio.Future()
"""

from HearthChat.core.server.auth import (
    CredentialAuthenticator,
    SessionTokenIssuer,
    create_authenticator,
    hash_password,
)
from HearthChat.core.server.directory import User, UserDirectory
from HearthChat.core.server.interfaces import (
    AuthResult,
    Authenticator,
    ConnectionRegistry,
    ConnectionState,
    MessageStore,
    TransportConnection,
)
from HearthChat.core.server.storage_sqlite import MessageLog, SQLiteStore
from HearthChat.core.server.transport import WebSocketConnection, WebSocketConnectionRegistry
from HearthChat.core.server.websocket_manager import ChatServer, create_server

__all__ = [
    'AuthResult',
    'Authenticator',
    'ConnectionRegistry',
    'ConnectionState',
    'MessageStore',
    'TransportConnection',

    'User',
    'UserDirectory',

    'CredentialAuthenticator',
    'SessionTokenIssuer',
    'create_authenticator',
    'hash_password',

    'SQLiteStore',
    'MessageLog',

    'WebSocketConnection',
    'WebSocketConnectionRegistry',

    'ChatServer',
    'create_server',
]
