"""Conversation history, persistence and the model/tool loop.

This package provides the turn types, the JSON history store, listener
notifications and the ConversationOrchestrator.
"""

from toolbridge.conversation.listener import ConversationListener, QueueListener
from toolbridge.conversation.orchestrator import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_WELCOME_MESSAGE,
    EMPTY_RESPONSE_TEXT,
    ConversationOrchestrator,
)
from toolbridge.conversation.store import HistoryStore
from toolbridge.conversation.types import (
    ChatMessage,
    ConversationState,
    ModelReply,
    ModelText,
    ToolCall,
    ToolCallRequest,
    ToolCallResult,
    ToolResult,
    Turn,
    TurnOutcome,
    UserText,
)

__all__ = [
    # Orchestration
    "ConversationOrchestrator",
    "ConversationListener",
    "QueueListener",
    "HistoryStore",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_WELCOME_MESSAGE",
    "EMPTY_RESPONSE_TEXT",
    # Types
    "ChatMessage",
    "ConversationState",
    "ModelReply",
    "ModelText",
    "ToolCall",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolResult",
    "Turn",
    "TurnOutcome",
    "UserText",
]
