"""
Exception hierarchy for HearthChat.
"""


class HearthChatError(Exception):
    """Base class for all HearthChat errors."""


class ProtocolError(HearthChatError):
    """A frame or record does not follow the wire format."""


class StoreError(HearthChatError):
    """The message store failed to persist or read back a row."""


class AuthenticationRefused(HearthChatError):
    """The server refused the handshake credentials."""

    def __init__(self, status_code: int = 403):
        super().__init__(f"Handshake refused with HTTP {status_code}")
        self.status_code = status_code
