"""
Tests for the sqlite store and the asynchronous message log.
"""

import asyncio

import pytest

from HearthChat.core.exceptions import StoreError
from HearthChat.core.message.protocol import decode_record
from HearthChat.core.server.storage_sqlite import SQLiteStore


class TestSQLiteStore:

    def test_users_are_seeded(self, sqlite_store):
        usernames = [row[1] for row in sqlite_store.load_users()]
        assert usernames == ["alice", "bob"]

    def test_duplicate_username(self, sqlite_store):
        assert sqlite_store.create_user("alice", "digest", "#000") is None

    def test_insert_returns_increasing_ids(self, sqlite_store, alice):
        first = sqlite_store.insert_message(None, alice.id, "one", 1)
        second = sqlite_store.insert_message(None, alice.id, "two", 2)
        assert second > first

    def test_select_single_row(self, sqlite_store, alice):
        sqlite_store.insert_message(None, alice.id, "one", 1)
        message_id = sqlite_store.insert_message(None, alice.id, "two", 2)
        (row,) = sqlite_store.select_messages(message_id)
        assert row.content == "two"
        assert sqlite_store.select_messages(12345) == []

    def test_schema_is_idempotent(self, db_path, alice):
        store = SQLiteStore(db_path)
        store.insert_message(None, alice.id, "kept", 1)
        store.close()

        reopened = SQLiteStore(db_path)
        try:
            assert [row.content for row in reopened.select_messages()] == ["kept"]
        finally:
            reopened.close()


class TestMessageLog:

    @pytest.mark.asyncio
    async def test_append_returns_stored_record(self, message_log, alice):
        record = await message_log.append(None, alice.id, "hello", 1700000000000)
        assert record == "1;;1700000000000;alice;#fff;hello"

    @pytest.mark.asyncio
    async def test_content_with_delimiters_is_stored_verbatim(self, message_log, bob):
        record = await message_log.append(None, bob.id, "a;b;\nc", 5)
        assert decode_record(record).content == "a;b;\nc"

    @pytest.mark.asyncio
    async def test_dangling_reply_is_kept(self, message_log, alice):
        record = await message_log.append(99, alice.id, "re", 5)
        assert decode_record(record).reply_id == 99

    @pytest.mark.asyncio
    async def test_malformed_reply_is_kept(self, message_log, alice):
        record = await message_log.append("oops", alice.id, "re", 5)
        assert decode_record(record).reply_id == "oops"

    @pytest.mark.asyncio
    async def test_unknown_author(self, message_log):
        record = await message_log.append(None, 999, "ghost", 5)
        assert record == "1;;5;unknown;;ghost"

    @pytest.mark.asyncio
    async def test_query_orders_by_id(self, message_log, alice, bob):
        await message_log.append(None, alice.id, "first", 30)
        await message_log.append(1, bob.id, "second", 10)
        records = [decode_record(r) for r in await message_log.query()]
        assert [(m.id, m.username, m.content) for m in records] == [(1, "alice", "first"), (2, "bob", "second")]

    @pytest.mark.asyncio
    async def test_query_single(self, message_log, alice):
        await message_log.append(None, alice.id, "first", 1)
        await message_log.append(None, alice.id, "second", 2)
        assert await message_log.query(2) == ["2;;2;alice;#fff;second"]
        assert await message_log.query(3) == []

    @pytest.mark.asyncio
    async def test_concurrent_appends_get_their_own_rows(self, message_log, alice):
        contents = [f"message {i}" for i in range(20)]
        records = await asyncio.gather(*(message_log.append(None, alice.id, c, i) for i, c in enumerate(contents)))

        decoded = [decode_record(r) for r in records]
        assert [m.content for m in decoded] == contents
        assert len({m.id for m in decoded}) == len(contents)

    @pytest.mark.asyncio
    async def test_failure_raises_store_error(self, message_log, sqlite_store, alice):
        sqlite_store.close()
        with pytest.raises(StoreError):
            await message_log.append(None, alice.id, "lost", 1)
        with pytest.raises(StoreError):
            await message_log.query()

    @pytest.mark.asyncio
    async def test_missing_row_after_insert_is_logged(self, message_log, sqlite_store, alice, caplog, monkeypatch):
        monkeypatch.setattr(sqlite_store, "select_messages", lambda message_id=None: [])
        with pytest.raises(StoreError):
            await message_log.append(None, alice.id, "vanished", 1)
        assert "not found after insert" in caplog.text


class TestReplyStorage:

    @pytest.mark.asyncio
    async def test_out_of_range_reply_is_stored_as_sent(self, message_log, alice):
        record = await message_log.append("99999999999999999999", alice.id, "hi", 5)
        assert record == "1;99999999999999999999;5;alice;#fff;hi"

    @pytest.mark.asyncio
    async def test_numeric_looking_text_is_not_converted(self, message_log, alice):
        record = await message_log.append("5_0", alice.id, "hi", 5)
        assert decode_record(record).reply_id == "5_0"
