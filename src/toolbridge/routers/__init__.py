"""FastAPI routers for API endpoints.

Each router module defines endpoints for one resource (health, tools, chat).
"""

from toolbridge.routers import chat, health, tools

__all__ = ["chat", "health", "tools"]
