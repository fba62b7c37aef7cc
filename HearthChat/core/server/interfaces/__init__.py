"""
Protocols for the server components.

ChatServer depends on these shapes rather than on the concrete classes;
tests substitute in-memory stores and fake registries.
"""

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Iterator, List, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from HearthChat.core.message.protocol import ReplyId
    from HearthChat.core.server.directory import User


class ConnectionState(Enum):
    """Lifecycle of one real-time connection."""
    CONNECTING = auto()
    AUTHENTICATED = auto()
    OPEN = auto()
    CLOSED = auto()


@dataclass
class AuthResult:
    """Result of an authentication attempt."""
    success: bool
    user: Optional['User'] = None
    username: Optional[str] = None
    error_code: Optional[str] = None


@runtime_checkable
class Authenticator(Protocol):
    """Resolves a raw Cookie header into a user."""

    @abstractmethod
    def resolve(self, raw_header: Optional[str]) -> Optional['User']:
        """Return the matching user, or None when unauthenticated."""
        ...

    @abstractmethod
    async def authenticate(self, raw_header: Optional[str]) -> AuthResult:
        ...


@runtime_checkable
class MessageStore(Protocol):
    """Durable ordered log of messages, exchanged as encoded records."""

    @abstractmethod
    async def append(self, reply_id: 'ReplyId', author_id: int, content: str, timestamp: int) -> str:
        """Persist a message and return the record of exactly that row."""
        ...

    @abstractmethod
    async def query(self, message_id: Optional[int] = None) -> List[str]:
        """Records ordered by ascending id, optionally a single row."""
        ...


@runtime_checkable
class TransportConnection(Protocol):
    """A live connection the registry can fan frames out to."""

    @abstractmethod
    def send(self, frame: str) -> bool:
        ...

    @abstractmethod
    def is_open(self) -> bool:
        ...


@runtime_checkable
class ConnectionRegistry(Protocol):
    """The set of live authenticated connections."""

    @abstractmethod
    def add(self, connection: TransportConnection) -> None:
        ...

    @abstractmethod
    def remove(self, connection: TransportConnection) -> bool:
        ...

    @abstractmethod
    def broadcast(self, frame: str) -> int:
        ...

    @abstractmethod
    def __iter__(self) -> Iterator[TransportConnection]:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...


__all__ = [
    'ConnectionState',
    'AuthResult',
    'Authenticator',
    'MessageStore',
    'TransportConnection',
    'ConnectionRegistry',
]
