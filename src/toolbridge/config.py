"""Configuration module for toolbridge using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LANG_CODE_PLACEHOLDER = "<LANG_CODE>"

DEFAULT_SYSTEM_PROMPT = (
    "You are an assistant with access to tools that call a REST API on the "
    "user's behalf. Use the tools to look up or change data instead of guessing. "
    "If a tool returns an error, explain it or try a corrected call. "
    f"Always answer in the language with the code {LANG_CODE_PLACEHOLDER}."
)


class BridgeSettings(BaseSettings):
    """Main configuration settings for toolbridge.

    All settings can be overridden via environment variables with the TOOLBRIDGE_ prefix.
    For example, TOOLBRIDGE_OLLAMA_HOST will override the ollama_host setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Ollama
    ollama_host: str = "http://localhost:11434"
    model: str = "qwen3:8b"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    language_code: str = "en"

    # Backing API
    api_description_path: str = "openapi.json"
    api_base_url: str | None = None
    api_headers: dict[str, str] = Field(default_factory=dict)

    # Data directories (relative to data_dir)
    data_dir: str = "."
    history_file: str = "chat_history.json"

    # Conversation loop
    max_tool_iterations: int = Field(default=8, ge=1)
    tool_timeout_seconds: float = Field(default=10.0, gt=0)
    model_timeout_seconds: float = Field(default=120.0, gt=0)
    welcome_message: str = (
        "Hi! Ask me anything about your data and I'll look it up for you."
    )

    # Web search pseudo-tool
    search_enabled: bool = False
    search_max_results: int = Field(default=5, ge=1, le=10)

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="TOOLBRIDGE_")

    # --- Resolved paths (computed from data_dir + relative paths) ---

    @property
    def resolved_history_path(self) -> Path:
        """Get the full path to the chat history file."""
        return Path(self.data_dir) / self.history_file

    @property
    def resolved_api_description_path(self) -> Path:
        """Get the full path to the API description document."""
        return Path(self.data_dir) / self.api_description_path

    @property
    def resolved_system_prompt(self) -> str:
        """Get the system prompt with the language placeholder filled in."""
        return self.system_prompt.replace(LANG_CODE_PLACEHOLDER, self.language_code)
