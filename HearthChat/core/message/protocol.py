"""
Wire protocol shared by the HearthChat server and its clients.

Frames are plain text. A client sends

    <reply-id-or-empty>;<content>

and the server pushes one or more records joined by RECORD_SEPARATOR, each

    <id>;<reply-id-or-empty>;<timestamp>;<username>;<color>;<content>

Content is always the last field and is never escaped: everything after the
last fixed delimiter belongs to it, delimiters included. RECORD_SEPARATOR is
reserved and stripped from everything a client sends, so it can never occur
inside stored content.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from HearthChat.core.exceptions import ProtocolError

FIELD_DELIMITER = ";"
RECORD_SEPARATOR = "\x1e"

# id, reply, timestamp, username, color
RECORD_FIXED_FIELDS = 5

ReplyId = Union[int, str, None]

# Reply ids that fit a sqlite INTEGER; anything else is kept as text
_REPLY_ID_PATTERN = re.compile(r"-?[0-9]+")
_REPLY_ID_MIN = -(2 ** 63)
_REPLY_ID_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class Message:
    """
    One chat message as carried by a record.

    Attributes:
        id: Store-assigned id, strictly increasing
        reply_id: Id of the message this one answers. A str only when the
                  sender's reply segment was not a number.
        timestamp: Insertion time in epoch milliseconds
        username: Author's username
        color: Author's display color
        content: Message text, may contain any character except RECORD_SEPARATOR
    """
    id: int
    reply_id: ReplyId
    timestamp: int
    username: str
    color: str
    content: str


@dataclass(frozen=True)
class ClientFrame:
    """A decoded client-to-server frame."""
    reply_id: ReplyId
    content: str

    @property
    def is_empty(self) -> bool:
        return self.content == ""


def parse_reply_id(segment: str) -> ReplyId:
    """
    Interpret a reply segment.

    Empty means no reply. Plain ASCII integer text within the signed 64-bit
    range becomes an int; anything else (surrounding spaces, underscores,
    non-ASCII digits, out-of-range numbers) is kept verbatim so a dangling
    reference can surface when rendered.
    """
    if segment == "":
        return None
    if _REPLY_ID_PATTERN.fullmatch(segment) is None:
        return segment
    value = int(segment)
    if not _REPLY_ID_MIN <= value <= _REPLY_ID_MAX:
        return segment
    return value


def format_reply_id(reply_id: ReplyId) -> str:
    return "" if reply_id is None else str(reply_id)


def encode_record(message: Message) -> str:
    """Serialize one message into a record string."""
    return FIELD_DELIMITER.join((
        str(message.id),
        format_reply_id(message.reply_id),
        str(message.timestamp),
        message.username,
        message.color,
        message.content,
    ))


def decode_record(record: str) -> Message:
    """
    Parse one record string.

    Raises:
        ProtocolError: if the record has fewer than five delimiters or a
                       non-numeric id or timestamp
    """
    parts = record.split(FIELD_DELIMITER, RECORD_FIXED_FIELDS)
    if len(parts) <= RECORD_FIXED_FIELDS:
        raise ProtocolError(f"Record has {len(parts)} fields, expected {RECORD_FIXED_FIELDS + 1}")
    message_id, reply, timestamp, username, color, content = parts
    try:
        return Message(
            id=int(message_id),
            reply_id=parse_reply_id(reply),
            timestamp=int(timestamp),
            username=username,
            color=color,
            content=content,
        )
    except ValueError as e:
        raise ProtocolError(f"Malformed record header: {e}") from e


def encode_frame(records: Iterable[str]) -> str:
    """Join already-encoded records into one server frame."""
    return RECORD_SEPARATOR.join(records)


def decode_frame(frame: str) -> List[Message]:
    """Split a server frame into messages. An empty frame carries none."""
    if frame == "":
        return []
    return [decode_record(record) for record in frame.split(RECORD_SEPARATOR)]


def encode_client_frame(reply_id: Optional[int], content: str) -> str:
    return f"{format_reply_id(reply_id)}{FIELD_DELIMITER}{content}"


def decode_client_frame(frame: str) -> ClientFrame:
    """
    Parse a client frame.

    The reserved record separator is removed first. A frame without any
    delimiter is all reply segment and has empty content.
    """
    reply, _, content = frame.replace(RECORD_SEPARATOR, "").partition(FIELD_DELIMITER)
    return ClientFrame(reply_id=parse_reply_id(reply), content=content)


__all__ = [
    'FIELD_DELIMITER',
    'RECORD_SEPARATOR',
    'Message',
    'ClientFrame',
    'ReplyId',
    'parse_reply_id',
    'format_reply_id',
    'encode_record',
    'decode_record',
    'encode_frame',
    'decode_frame',
    'encode_client_frame',
    'decode_client_frame',
]
