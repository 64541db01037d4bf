"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of toolbridge.
        ollama_connected: Optional boolean indicating Ollama connectivity.
        ollama_host: Optional string with the Ollama host URL.
        model: Optional name of the chat model.
        tool_count: Number of tools exposed to the model.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of toolbridge")
    ollama_connected: bool | None = Field(
        default=None,
        description="Whether Ollama is connected",
    )
    ollama_host: str | None = Field(
        default=None,
        description="Ollama host URL",
    )
    model: str | None = Field(default=None, description="Chat model name")
    tool_count: int = Field(default=0, description="Number of tools in the catalog")
