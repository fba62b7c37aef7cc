"""
User administration for HearthChat.

The server reads the users table once at startup, so restart it after
adding users.
"""

import getpass
import logging

from HearthChat.config import config
from HearthChat.core.message.protocol import FIELD_DELIMITER, RECORD_SEPARATOR
from HearthChat.core.server.auth import hash_password
from HearthChat.core.server.storage_sqlite import SQLiteStore

logger = logging.getLogger(__name__)


def add_user(username, color, password=None, db_path=None):
    """
    Create a user row.

    Returns:
        The new user's id

    Raises:
        ValueError: invalid username/color, or the username is taken
    """
    for value, label in ((username, "username"), (color, "color")):
        if not value or FIELD_DELIMITER in value or RECORD_SEPARATOR in value:
            raise ValueError(f"Invalid {label}: {value!r}")
    if password is None:
        password = getpass.getpass(f"Password for {username}: ")

    store = SQLiteStore(db_path or config.SQLITE_DB_FILE)
    try:
        user_id = store.create_user(username, hash_password(password), color)
    finally:
        store.close()
    if user_id is None:
        raise ValueError(f"Username already exists: {username}")
    logger.info("Created user %s (id %s)", username, user_id)
    return user_id
