"""
Local message cache for clients.
Keeps received messages in arrival order, keyed by id for reply lookups.
"""

from typing import Dict, Iterator, List, Optional

from HearthChat.core.message.protocol import Message, ReplyId


class MessageCache:
    """
    Append-only ordered cache of received messages.

    Only a full-history frame empties it again (see `clear`).
    """

    def __init__(self):
        self._messages: Dict[int, Message] = {}

    @property
    def messages(self) -> List[Message]:
        """Get all messages in arrival order."""
        return list(self._messages.values())

    def add(self, message: Message) -> bool:
        """
        Append a message.

        Returns:
            False if a message with the same id is already cached
        """
        if message.id in self._messages:
            return False
        self._messages[message.id] = message
        return True

    def get(self, message_id: ReplyId) -> Optional[Message]:
        """Look up a message; non-numeric or unknown ids give None."""
        if not isinstance(message_id, int):
            return None
        return self._messages.get(message_id)

    def clear(self) -> None:
        """Clear all messages."""
        self._messages.clear()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages.values()))

    def __len__(self) -> int:
        return len(self._messages)
