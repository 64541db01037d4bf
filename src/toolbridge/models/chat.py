"""Pydantic models for chat API requests and responses.

This module defines the request and response schemas for the chat endpoints,
including both streaming and non-streaming chat interactions.
"""

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Request body for chat endpoints.

    Used by both POST /api/v1/chat (non-streaming)
    and POST /api/v1/chat/stream (streaming).
    """

    message: str = Field(description="The user message to send.")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"message": "Which products are running low?"},
            ]
        }
    )


class MessageResponse(BaseModel):
    """A visible chat message."""

    text: str = Field(description="Message text")
    is_user: bool = Field(description="True for user messages, False for the assistant")
    is_loading: bool = Field(
        default=False, description="True while the assistant is still working"
    )

    model_config = ConfigDict(from_attributes=True)


class ToolCallInfo(BaseModel):
    """A tool call executed while answering."""

    call_id: str = Field(description="Identifier of the call")
    tool_name: str = Field(description="Name of the tool")
    arguments: dict = Field(default_factory=dict, description="Arguments sent by the model")


class ChatResponse(BaseModel):
    """Response body for the non-streaming chat endpoint."""

    message: MessageResponse = Field(description="The assistant's final message")
    state: str = Field(description="Conversation state after the message was handled")
    tool_calls_executed: list[ToolCallInfo] = Field(
        default_factory=list,
        description="Tool calls that were executed during this response",
    )
    round_trips: int = Field(default=0, description="Number of model requests made")
    limit_reached: bool = Field(
        default=False, description="Whether the tool round-trip cap ended the turn"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": {
                    "text": "You have 3 products below their minimum stock.",
                    "is_user": False,
                    "is_loading": False,
                },
                "state": "idle",
                "tool_calls_executed": [
                    {
                        "call_id": "a1b2c3d4e5",
                        "tool_name": "get_stock_volatile",
                        "arguments": {},
                    }
                ],
                "round_trips": 2,
                "limit_reached": False,
            }
        }
    )


class MessageListResponse(BaseModel):
    """Response body for GET /api/v1/chat/messages and DELETE /api/v1/chat."""

    messages: list[MessageResponse] = Field(default_factory=list)


class DoneEvent(BaseModel):
    """SSE event sent once the final message has been produced."""

    state: str
    round_trips: int = 0
    limit_reached: bool = False


class ErrorEvent(BaseModel):
    """SSE event sent when the turn could not be handled."""

    code: str
    message: str
    details: dict = Field(default_factory=dict)
