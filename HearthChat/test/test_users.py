"""
Tests for the add-user command.
"""

import pytest

from HearthChat.core.server.auth import CredentialAuthenticator
from HearthChat.core.server.directory import UserDirectory
from HearthChat.core.server.storage_sqlite import SQLiteStore
from HearthChat.start.users import add_user
from HearthChat.test.conftest import cookie


def test_new_user_can_log_in(db_path):
    user_id = add_user("carol", "#c0c", password="ünïcode", db_path=db_path)

    store = SQLiteStore(db_path)
    try:
        directory = UserDirectory.from_rows(store.load_users())
    finally:
        store.close()

    carol = directory.get(user_id)
    assert (carol.username, carol.color) == ("carol", "#c0c")
    header = cookie("carol", "ünïcode".encode("utf-8").decode("latin-1"))
    assert CredentialAuthenticator(directory).resolve(header) is carol


def test_taken_username(db_path):
    with pytest.raises(ValueError, match="already exists"):
        add_user("alice", "#000", password="x", db_path=db_path)


@pytest.mark.parametrize("username, color", [("a;b", "#fff"), ("ab", "#f\x1e"), ("", "#fff")])
def test_reserved_characters(db_path, username, color):
    with pytest.raises(ValueError, match="Invalid"):
        add_user(username, color, password="x", db_path=db_path)
