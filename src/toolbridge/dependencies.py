"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that are used across
multiple routers to inject the objects created during application startup.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from toolbridge.config import BridgeSettings
from toolbridge.conversation import ConversationOrchestrator
from toolbridge.schema import CompiledApi


@lru_cache
def get_settings() -> BridgeSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the TOOLBRIDGE_ prefix.

    Returns:
        BridgeSettings: The application configuration settings.
    """
    return BridgeSettings()


def _not_initialized(component: str) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={
            "error": {
                "code": "not_initialized",
                "message": f"{component} not initialized",
                "details": {},
            }
        },
    )


def get_compiled_api(request: Request) -> CompiledApi:
    """Get the compiled tool catalog and registry from app state.

    Raises:
        HTTPException: If startup has not compiled the API description (503).
    """
    if not hasattr(request.app.state, "compiled_api"):
        raise _not_initialized("Tool catalog")
    return request.app.state.compiled_api


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    """Get the conversation orchestrator from app state.

    Args:
        request: The FastAPI request object.

    Returns:
        ConversationOrchestrator: The single conversation hosted by this app.

    Raises:
        HTTPException: If the orchestrator is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "orchestrator"):
        raise _not_initialized("Conversation")
    return request.app.state.orchestrator
