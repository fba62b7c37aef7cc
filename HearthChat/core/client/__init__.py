"""
Client module for HearthChat application.
Provides the client session and a terminal client built on it.
"""

from .command_line_client import StandardCommandlineClient
from .session import ClientSession, LOGOUT_COMMAND

__all__ = [
    'ClientSession',
    'LOGOUT_COMMAND',
    'StandardCommandlineClient',
]
