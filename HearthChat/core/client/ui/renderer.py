"""
Message renderers for HearthChat clients.

`HtmlRenderer` produces the markup a browser view shows: an `img:` prefix
followed by a URL embeds an image, any other content is HTML-escaped and
then has its bare URLs turned into links. Escaping runs first, so an `&`
inside a linked URL reaches the href as `&amp;` and is restored there.

`TextRenderer` produces one plain line per message for terminals.
"""

import html
import re
from datetime import datetime
from typing import Optional, Protocol

from HearthChat.core.client.ui.message_buffer import MessageCache
from HearthChat.core.message.protocol import Message

URL_PATTERN = re.compile(r"\b((?:https?)://|data:)(\w+:?\w*)?(\S+)(:\d+)?(/|/([\w#!:.?+=&%!\-/]))?\b")

IMAGE_PREFIX = "img:"
NOT_FOUND_TEXT = "Message not found"

_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#039;",
}
_ESCAPE_PATTERN = re.compile("[&<>\"']")


def escape_html(text: str) -> str:
    return _ESCAPE_PATTERN.sub(lambda m: _ESCAPES[m.group(0)], text)


def linkify(escaped: str) -> str:
    """Wrap every URL of already-escaped text in a link."""
    def _link(match: re.Match) -> str:
        url = match.group(0)
        return f'<a href="{url.replace("&amp;", "&")}">{url}</a>'

    return URL_PATTERN.sub(_link, escaped)


def image_url(content: str) -> Optional[str]:
    """The image URL of an `img:` directive, or None for ordinary content."""
    if content.startswith(IMAGE_PREFIX) and URL_PATTERN.search(content[len(IMAGE_PREFIX):]):
        return content[len(IMAGE_PREFIX):]
    return None


def format_date(timestamp: int) -> str:
    """DD/MM HH:MM in local time."""
    return datetime.fromtimestamp(timestamp / 1000).strftime("%d/%m %H:%M")


class MessageRenderer(Protocol):
    def render_message(self, message: Message, cache: MessageCache) -> str:
        ...

    def render_reply_preview(self, message: Optional[Message]) -> str:
        ...


class HtmlRenderer:
    """Renders messages as HTML fragments."""

    def render_content(self, content: str) -> str:
        url = image_url(content)
        if url is not None:
            return f'<img src="{html.escape(url, quote=True)}">'
        return linkify(escape_html(content)).replace("\n", "<br>")

    def render_error(self, text: str) -> str:
        return f'<span class="error">{escape_html(text)}</span>'

    def render_body(self, message: Message) -> str:
        return (
            f'<span class="message-date">{format_date(message.timestamp)}</span> '
            f'<span class="message-sender" style="color: {escape_html(message.color)}">'
            f'{escape_html(message.username)}</span> : '
            f'<span class="message-content">{self.render_content(message.content)}</span>'
        )

    def render_message(self, message: Message, cache: MessageCache) -> str:
        """
        Full message markup, with the replied-to message shown above it.

        A reply id missing from the cache renders the not-found placeholder.
        """
        reply = ""
        if message.reply_id is not None:
            target = cache.get(message.reply_id)
            inner = self.render_body(target) if target is not None else self.render_error(NOT_FOUND_TEXT)
            reply = f'<span class="message-reply">┌ {inner}</span><br>'
        return f'<div class="message" id="{message.id}" data-reply="{message.id}">{reply}{self.render_body(message)}</div>'

    def render_reply_preview(self, message: Optional[Message]) -> str:
        if message is None:
            return self.render_error(NOT_FOUND_TEXT)
        return self.render_body(message)


class TextRenderer:
    """Renders messages as single terminal lines."""

    def render_body(self, message: Message) -> str:
        content = message.content.replace("\n", " ")
        return f"[{format_date(message.timestamp)}] {message.username}: {content}"

    def render_message(self, message: Message, cache: MessageCache) -> str:
        line = f"#{message.id} {self.render_body(message)}"
        if message.reply_id is None:
            return line
        target = cache.get(message.reply_id)
        quoted = self.render_body(target) if target is not None else f"({NOT_FOUND_TEXT})"
        return f"  ┌ {quoted}\n{line}"

    def render_reply_preview(self, message: Optional[Message]) -> str:
        if message is None:
            return f"Replying to: ({NOT_FOUND_TEXT})"
        return f"Replying to: {self.render_body(message)}"
