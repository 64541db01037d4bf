"""Pydantic models for the tool catalog endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class ToolResponse(BaseModel):
    """A tool declaration as exposed to the model.

    ``method`` and ``path`` are set for tools backed by an API operation and
    left empty for pseudo-tools such as web search.
    """

    name: str = Field(description="Tool name used by the model")
    description: str = Field(default="", description="Tool description")
    parameters: dict[str, Any] = Field(
        default_factory=dict, description="JSON-schema shaped parameter tree"
    )
    method: str | None = Field(default=None, description="HTTP method (uppercase)")
    path: str | None = Field(default=None, description="Path template")


class ToolListResponse(BaseModel):
    """Response body for GET /api/v1/tools."""

    tools: list[ToolResponse] = Field(default_factory=list)
    count: int = Field(default=0, description="Number of tools")
