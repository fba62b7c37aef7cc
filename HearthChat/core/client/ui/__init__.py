"""
UI components shared by HearthChat clients.
"""

from .message_buffer import MessageCache
from .renderer import HtmlRenderer, TextRenderer

__all__ = ['MessageCache', 'HtmlRenderer', 'TextRenderer']
