"""
Test configuration and fixtures for HearthChat tests.

Provides:
- A temporary sqlite database seeded with two users
- The directory, authenticator and message log built on it
- A fake server-side websocket that records what it was sent
"""

import asyncio
from pathlib import Path
from typing import List

import pytest
import pytest_asyncio
from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State

from HearthChat.core.server.auth import CredentialAuthenticator, hash_password
from HearthChat.core.server.directory import UserDirectory
from HearthChat.core.server.storage_sqlite import MessageLog, SQLiteStore
from HearthChat.core.server.websocket_manager import ChatServer

TEST_USERS = [
    # username, password, color
    ("alice", "wonderland", "#fff"),
    ("bob", "pässwörd", "#0af"),
]


def cookie(username: str, password: str) -> str:
    return f"username={username}; password={password}"


def latin1_mangled(text: str) -> str:
    """How an HTTP server hands us the UTF-8 bytes of `text`."""
    return text.encode("utf-8").decode("latin-1")


class FakeWebSocket:
    """Stands in for a websockets ServerConnection."""

    def __init__(self):
        self.state = State.OPEN
        self.sent: List[str] = []
        self.closed_with = None

    async def send(self, frame: str) -> None:
        if self.state is not State.OPEN:
            raise ConnectionClosedOK(None, None)
        self.sent.append(frame)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.state = State.CLOSED
        self.closed_with = (code, reason)


async def wait_for_frames(websocket: FakeWebSocket, count: int, timeout: float = 2.0) -> List[str]:
    """Wait until the fake websocket has been sent `count` frames."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while len(websocket.sent) < count:
        if loop.time() > deadline:
            raise AssertionError(f"Expected {count} frames, got {websocket.sent!r}")
        await asyncio.sleep(0.01)
    return websocket.sent


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    path = str(tmp_path / "hearthchat.db")
    store = SQLiteStore(path)
    for username, password, color in TEST_USERS:
        store.create_user(username, hash_password(password), color)
    store.close()
    return path


@pytest.fixture
def sqlite_store(db_path: str):
    store = SQLiteStore(db_path)
    yield store
    store.close()


@pytest.fixture
def directory(sqlite_store: SQLiteStore) -> UserDirectory:
    return UserDirectory.from_rows(sqlite_store.load_users())


@pytest.fixture
def alice(directory: UserDirectory):
    return directory.find("alice")


@pytest.fixture
def bob(directory: UserDirectory):
    return directory.find("bob")


@pytest.fixture
def authenticator(directory: UserDirectory) -> CredentialAuthenticator:
    return CredentialAuthenticator(directory)


@pytest.fixture
def message_log(sqlite_store: SQLiteStore, directory: UserDirectory) -> MessageLog:
    return MessageLog(sqlite_store, directory)


@pytest_asyncio.fixture
async def chat_server(authenticator: CredentialAuthenticator, message_log: MessageLog):
    server = ChatServer(authenticator, message_log)
    yield server
    for connection in server.registry:
        await server.close_connection(connection)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
