"""SQLite persistence layer for HearthChat.

Two tables: the registered users, read once at startup into the
UserDirectory, and the append-only message log.

Design goals:
  - Zero extra dependencies (uses stdlib sqlite3)
  - Safe for use from worker threads: every statement runs under one lock
  - The id of an appended row comes from the inserting cursor itself, never
    from a separate "last insert" query that a concurrent append could race

`SQLiteStore` is synchronous. `MessageLog` is the asynchronous owner the
server talks to: it serializes appends and queries and offloads them to a
worker thread so the event loop never blocks on disk.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from HearthChat.core.exceptions import StoreError
from HearthChat.core.message.protocol import Message, ReplyId, encode_record
from HearthChat.core.server.directory import UserDirectory

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "unknown"

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  username TEXT UNIQUE NOT NULL,
  password_hash TEXT NOT NULL,
  color TEXT NOT NULL
);

-- reply is not a foreign key: dangling references are allowed. It has no
-- declared type so non-numeric reply text is stored exactly as sent.
CREATE TABLE IF NOT EXISTS messages (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  reply,
  timestamp INTEGER NOT NULL,
  user INTEGER NOT NULL,
  content TEXT NOT NULL
);
"""


@dataclass(frozen=True)
class StoredMessage:
    id: int
    reply: Union[int, str, None]
    timestamp: int
    user_id: int
    content: str


class SQLiteStore:
    """A tiny SQLite-backed store."""

    def __init__(self, db_path: str):
        self.db_path = str(Path(db_path))
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        with self._lock:
            self._conn.executescript(SCHEMA_SQL)
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # --------------------------- users ---------------------------
    def load_users(self) -> List[Tuple[int, str, str, str]]:
        with self._lock:
            cur = self._conn.execute("SELECT id, username, password_hash, color FROM users ORDER BY id")
            return [(int(r["id"]), str(r["username"]), str(r["password_hash"]), str(r["color"]))
                    for r in cur.fetchall()]

    def create_user(self, username: str, password_hash: str, color: str) -> Optional[int]:
        """Insert a user; returns its id, or None if the username is taken."""
        with self._lock:
            try:
                cur = self._conn.execute(
                    "INSERT INTO users(username, password_hash, color) VALUES(?,?,?)",
                    (username, password_hash, color),
                )
                self._conn.commit()
                return int(cur.lastrowid)
            except sqlite3.IntegrityError:
                return None

    # ------------------------- messages -------------------------
    def insert_message(self, reply: ReplyId, user_id: int, content: str, timestamp: int) -> int:
        """Append a message and return the id sqlite assigned to it."""
        with self._lock:
            try:
                cur = self._conn.execute(
                    "INSERT INTO messages(reply, timestamp, user, content) VALUES(?,?,?,?)",
                    (reply, int(timestamp), int(user_id), content),
                )
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
            return int(cur.lastrowid)

    def select_messages(self, message_id: Optional[int] = None) -> List[StoredMessage]:
        """All messages by ascending id, or the single row with `message_id`."""
        with self._lock:
            if message_id is None:
                cur = self._conn.execute("SELECT * FROM messages ORDER BY id")
            else:
                cur = self._conn.execute("SELECT * FROM messages WHERE id=? ORDER BY id", (int(message_id),))
            return [
                StoredMessage(
                    id=int(r["id"]),
                    reply=r["reply"],
                    timestamp=int(r["timestamp"]),
                    user_id=int(r["user"]),
                    content=str(r["content"]),
                )
                for r in cur.fetchall()
            ]


class MessageLog:
    """
    Serializing asynchronous owner of the message table.

    Returns encoded records, resolving each author against the directory.
    Any sqlite failure is logged and re-raised as StoreError; nothing is
    retried.
    """

    def __init__(self, store: SQLiteStore, directory: UserDirectory):
        self._store = store
        self._directory = directory
        self._lock = asyncio.Lock()

    def _encode(self, row: StoredMessage) -> str:
        author = self._directory.get(row.user_id)
        return encode_record(Message(
            id=row.id,
            reply_id=row.reply,
            timestamp=row.timestamp,
            username=author.username if author else UNKNOWN_AUTHOR,
            color=author.color if author else "",
            content=row.content,
        ))

    async def append(self, reply_id: ReplyId, author_id: int, content: str, timestamp: int) -> str:
        """Persist a message and return the record of exactly that row."""
        async with self._lock:
            try:
                message_id = await asyncio.to_thread(
                    self._store.insert_message, reply_id, author_id, content, timestamp
                )
                rows = await asyncio.to_thread(self._store.select_messages, message_id)
            except (sqlite3.Error, OverflowError) as e:
                logger.exception("Failed to append message from user %s", author_id)
                raise StoreError(str(e)) from e
        if len(rows) != 1:
            logger.error("Message %s not found after insert (%d rows)", message_id, len(rows))
            raise StoreError(f"Message {message_id} not found after insert")
        return self._encode(rows[0])

    async def query(self, message_id: Optional[int] = None) -> List[str]:
        """Records ordered by ascending id; the whole log unless `message_id`."""
        async with self._lock:
            try:
                rows = await asyncio.to_thread(self._store.select_messages, message_id)
            except sqlite3.Error as e:
                logger.exception("Failed to query messages")
                raise StoreError(str(e)) from e
        return [self._encode(row) for row in rows]
