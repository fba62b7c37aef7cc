"""
User directory: the immutable snapshot of registered identities.

Loaded once at startup from the store and shared read-only by the
authenticator and the record encoder. There is no reload path; restart the
server to pick up new users.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional, Tuple

from HearthChat.core.message.protocol import FIELD_DELIMITER, RECORD_SEPARATOR

logger = logging.getLogger(__name__)

_RESERVED = (FIELD_DELIMITER, RECORD_SEPARATOR)


@dataclass(frozen=True)
class User:
    """
    A registered identity.

    Attributes:
        id: Primary key in the users table
        username: Unique login name
        password_digest: base64 SHA-256 of the UTF-8 password
        color: CSS color used to display the username
    """
    id: int
    username: str
    password_digest: str
    color: str

    def __repr__(self) -> str:
        return f"User(id={self.id!r}, username={self.username!r}, color={self.color!r})"


class UserDirectory:
    """Read-only lookup of users by id and by username."""

    def __init__(self, users: Iterable[User] = ()):
        by_id = {}
        by_name = {}
        for user in users:
            for value, label in ((user.username, "username"), (user.color, "color")):
                if any(ch in value for ch in _RESERVED):
                    raise ValueError(f"User {user.id} has a reserved character in its {label}")
            if user.username in by_name:
                raise ValueError(f"Duplicate username: {user.username}")
            by_id[user.id] = user
            by_name[user.username] = user
        self._by_id: Mapping[int, User] = MappingProxyType(by_id)
        self._by_name: Mapping[str, User] = MappingProxyType(by_name)

    @classmethod
    def from_rows(cls, rows: Iterable[Tuple[int, str, str, str]]) -> 'UserDirectory':
        """Build a directory from (id, username, password_hash, color) rows."""
        directory = cls(User(int(r[0]), str(r[1]), str(r[2]), str(r[3])) for r in rows)
        logger.info("Registered users: %d", len(directory))
        for user in directory:
            logger.info("  - id: %s, username: %s, color: %s", user.id, user.username, user.color)
        return directory

    def get(self, user_id: int) -> Optional[User]:
        return self._by_id.get(user_id)

    def find(self, username: str) -> Optional[User]:
        return self._by_name.get(username)

    def __iter__(self) -> Iterator[User]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, username: object) -> bool:
        return username in self._by_name
