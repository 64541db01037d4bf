"""Presentation notifications emitted by the orchestrator."""

import asyncio
from typing import Any, Protocol

from toolbridge.conversation.types import ChatMessage


class ConversationListener(Protocol):
    """Receives ordered append/update notifications for visible messages."""

    def on_message_appended(self, message: ChatMessage) -> None: ...

    def on_last_message_updated(self, message: ChatMessage) -> None: ...


class QueueListener:
    """Collects notifications into an asyncio queue for server-sent events.

    Each notification is queued as ``(event_name, message)``; the stream
    endpoint drains the queue while the turn runs.
    """

    MESSAGE_APPENDED = "message_appended"
    MESSAGE_UPDATED = "message_updated"

    def __init__(self) -> None:
        self.queue: asyncio.Queue[tuple[str, ChatMessage]] = asyncio.Queue()

    def on_message_appended(self, message: ChatMessage) -> None:
        self.queue.put_nowait((self.MESSAGE_APPENDED, message))

    def on_last_message_updated(self, message: ChatMessage) -> None:
        self.queue.put_nowait((self.MESSAGE_UPDATED, message))

    def drain(self) -> list[tuple[str, Any]]:
        """Return everything queued so far without waiting."""
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events
