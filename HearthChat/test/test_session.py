"""
Tests for ClientSession state handling (no network).
"""

import pytest

from HearthChat.core.client.session import ClientSession, LOGOUT_COMMAND
from HearthChat.core.client.ui.renderer import NOT_FOUND_TEXT
from HearthChat.core.message.protocol import RECORD_SEPARATOR
from HearthChat.test.conftest import latin1_mangled

HISTORY = RECORD_SEPARATOR.join([
    "1;;1000;alice;#fff;first",
    "2;1;2000;bob;#0af;second",
])


class FakeClientWebSocket:

    def __init__(self):
        self.sent = []
        self.closed = False

    async def send(self, frame):
        self.sent.append(frame)

    async def close(self):
        self.closed = True


@pytest.fixture
def updates():
    return []


@pytest.fixture
def session(updates):
    def on_update(session, added, replaced):
        updates.append(([m.id for m in added], replaced))

    return ClientSession("ws://localhost:8765", "alice", "wonderland", on_update=on_update)


class TestFrames:

    def test_history_replaces_view(self, session, updates):
        session.handle_frame(HISTORY)
        assert [m.id for m in session.cache] == [1, 2]
        assert len(session.view) == 2
        assert updates == [([1, 2], True)]

    def test_single_record_after_history_appends(self, session, updates):
        session.handle_frame(HISTORY)
        session.handle_frame("3;;3000;alice;#fff;third")
        assert [m.id for m in session.cache] == [1, 2, 3]
        assert updates[-1] == ([3], False)

    def test_single_record_history_replaces(self, session, updates):
        session.handle_frame("7;;1000;alice;#fff;only")
        assert updates == [([7], True)]

    def test_empty_history(self, session, updates):
        session.handle_frame("")
        assert len(session.cache) == 0
        assert updates == [([], True)]

    def test_reconnect_replaces_again(self, session):
        session.handle_frame(HISTORY)
        session.handle_frame("3;;3000;alice;#fff;third")

        session._on_open(FakeClientWebSocket())
        session.handle_frame("1;;1000;alice;#fff;first")

        assert [m.id for m in session.cache] == [1]
        assert len(session.view) == 1

    def test_multi_record_frame_always_replaces(self, session):
        session.handle_frame("9;;1000;alice;#fff;old")
        session.handle_frame(HISTORY)
        assert [m.id for m in session.cache] == [1, 2]

    def test_duplicate_is_skipped(self, session):
        session.handle_frame(HISTORY)
        assert session.handle_frame("2;1;2000;bob;#0af;second") == []
        assert len(session.view) == 2

    def test_reply_is_rendered_above(self, session):
        session.handle_frame(HISTORY)
        assert 'class="message-reply"' in session.view[1]
        assert "first" in session.view[1]

    def test_malformed_frame_is_ignored(self, session, updates):
        session.handle_frame(HISTORY)
        assert session.handle_frame("garbage") == []
        assert len(session.cache) == 2
        assert len(updates) == 1


class TestReplies:

    def test_preview_of_cached_message(self, session):
        session.handle_frame(HISTORY)
        session.set_reply(1)
        assert session.pending_reply == 1
        assert "first" in session.reply_preview

    def test_preview_of_unknown_message(self, session):
        session.handle_frame(HISTORY)
        session.set_reply(42)
        assert session.pending_reply == 42
        assert NOT_FOUND_TEXT in session.reply_preview

    def test_clear(self, session):
        session.set_reply(1)
        session.set_reply(None)
        assert session.pending_reply is None
        assert session.reply_preview is None


class TestSending:

    @pytest.mark.asyncio
    async def test_sending_is_disabled_until_connected(self, session):
        assert not session.can_send
        assert not await session.send("hello")

    @pytest.mark.asyncio
    async def test_send(self, session):
        websocket = FakeClientWebSocket()
        session._on_open(websocket)

        assert await session.send("hello")
        assert websocket.sent == [";hello"]

    @pytest.mark.asyncio
    async def test_send_reply_clears_target(self, session):
        websocket = FakeClientWebSocket()
        session._on_open(websocket)
        session.handle_frame(HISTORY)
        session.set_reply(2)

        assert await session.send("a;b")
        assert websocket.sent == ["2;a;b"]
        assert session.pending_reply is None

    @pytest.mark.asyncio
    async def test_empty_content_is_not_sent(self, session):
        websocket = FakeClientWebSocket()
        session._on_open(websocket)
        assert not await session.send("")
        assert websocket.sent == []

    @pytest.mark.asyncio
    async def test_disabled_after_close(self, session):
        session._on_open(FakeClientWebSocket())
        session._on_close()
        assert not session.can_send
        assert not await session.send("hello")

    @pytest.mark.asyncio
    async def test_logout(self, session):
        websocket = FakeClientWebSocket()
        session._on_open(websocket)

        assert not await session.send(LOGOUT_COMMAND)
        assert websocket.sent == []
        assert websocket.closed
        assert session.username is None
        assert session.password is None

    def test_cookie_header(self, session):
        assert session.cookie_header == "username=alice; password=wonderland"

    def test_non_ascii_cookie_header_carries_utf8_bytes(self):
        session = ClientSession("ws://localhost:8765", "bob", "pässwörd")
        header = session.cookie_header
        assert header.encode("iso-8859-1") == "username=bob; password=pässwörd".encode("utf-8")
        assert header == latin1_mangled("username=bob; password=pässwörd")
