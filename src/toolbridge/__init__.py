"""toolbridge: let an Ollama model call a REST API through generated tools.

This package compiles an OpenAPI description into function-calling tools,
dispatches the model's tool calls as HTTP requests and runs the conversation
loop behind a small REST and SSE interface.
"""

__version__ = "0.1.0"

from toolbridge.app import create_app  # noqa: E402

__all__ = ["create_app", "__version__"]
