"""Data types for the conversation history.

This module defines the turn variants that make up the chat history, the
records shown to (and persisted for) the user, and the outcome of one
user submission.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class ToolCall:
    """A single tool invocation requested by the model."""

    call_id: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """The outcome of one tool call, matched to its request by ``call_id``."""

    call_id: str
    tool_name: str
    payload: Any = None


@dataclass
class UserText:
    """A message typed by the user."""

    text: str


@dataclass
class ModelText:
    """A plain-text answer from the model (or a synthetic one)."""

    text: str


@dataclass
class ToolCallRequest:
    """All tool calls the model requested in one response, in its order."""

    calls: list[ToolCall] = field(default_factory=list)


@dataclass
class ToolCallResult:
    """One result per call of the immediately preceding ``ToolCallRequest``."""

    results: list[ToolResult] = field(default_factory=list)


# Union type for all turn types
Turn = UserText | ModelText | ToolCallRequest | ToolCallResult


@dataclass
class ChatMessage:
    """A user-visible chat entry.

    Only user and model texts become chat messages; tool scaffolding stays
    in the history. ``is_loading`` marks the placeholder shown while the
    model and tools are working; loading entries are never persisted.
    """

    text: str
    is_user: bool
    is_loading: bool = False

    def to_record(self) -> dict[str, Any]:
        return {"text": self.text, "isUser": self.is_user}

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ChatMessage":
        return cls(text=str(record["text"]), is_user=bool(record["isUser"]))


class ConversationState(str, Enum):
    """Where the orchestrator is in handling a user message."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    ERROR_REPORTED = "error_reported"


@dataclass
class TurnOutcome:
    """Result of handling one user message.

    Attributes:
        reply: The terminal text turn appended to the history
        tool_calls_executed: Every tool call run while producing the reply
        round_trips: Number of model calls made
        limit_reached: True if the round-trip cap ended the turn
        error: Description of an irrecoverable failure, if one occurred
    """

    reply: ModelText
    tool_calls_executed: list[ToolCall] = field(default_factory=list)
    round_trips: int = 0
    limit_reached: bool = False
    error: str | None = None


@dataclass
class ModelReply:
    """One response from the model collaborator.

    Attributes:
        text: Plain-text part of the response (may be empty)
        tool_calls: Tool calls requested by the model, in its order
    """

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
