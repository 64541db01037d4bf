"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from toolbridge.models.chat import (
    ChatRequest,
    ChatResponse,
    DoneEvent,
    ErrorEvent,
    MessageListResponse,
    MessageResponse,
    ToolCallInfo,
)
from toolbridge.models.health import HealthResponse
from toolbridge.models.tools import ToolListResponse, ToolResponse

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "DoneEvent",
    "ErrorEvent",
    "HealthResponse",
    "MessageListResponse",
    "MessageResponse",
    "ToolCallInfo",
    "ToolListResponse",
    "ToolResponse",
]
