"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance. The lifespan compiles the API description,
builds the model, HTTP and dispatch collaborators once, and restores the
conversation history.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from toolbridge import __version__
from toolbridge.config import BridgeSettings
from toolbridge.conversation import ConversationOrchestrator, HistoryStore
from toolbridge.dispatch import (
    SEARCH_TOOL_NAME,
    CallDispatcher,
    HttpTransport,
    search_tool_declaration,
)
from toolbridge.errors import ApiDescriptionError
from toolbridge.ollama import OllamaClient
from toolbridge.routers import chat, health, tools
from toolbridge.schema import (
    CompiledApi,
    ToolDeclaration,
    compile_api_description,
    load_api_description,
)

logger = logging.getLogger(__name__)


def load_tool_catalog(
    settings: BridgeSettings,
) -> tuple[CompiledApi, list[ToolDeclaration]]:
    """Compile the configured API description into the model's tool catalog.

    Args:
        settings: Application settings

    Returns:
        The compiled API and the full catalog (including the search
        pseudo-tool when enabled)

    Raises:
        SchemaError: If the description cannot be loaded or compiled
    """
    document = load_api_description(settings.resolved_api_description_path)
    reserved = (SEARCH_TOOL_NAME,) if settings.search_enabled else ()
    compiled = compile_api_description(document, reserved_names=reserved)

    catalog = list(compiled.catalog)
    if settings.search_enabled:
        catalog.append(search_tool_declaration())
    return compiled, catalog


def resolve_base_url(settings: BridgeSettings, compiled: CompiledApi) -> str:
    """Pick the backing API base URL: explicit setting first, then servers[0]."""
    if settings.api_base_url:
        return settings.api_base_url
    for url in compiled.server_urls:
        if url.startswith(("http://", "https://")):
            return url
    raise ApiDescriptionError(
        "No absolute server URL in the API description; set TOOLBRIDGE_API_BASE_URL"
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    Compilation failures propagate and abort startup; there is no degraded
    mode without a tool catalog.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: BridgeSettings = app.state.settings

    compiled, catalog = load_tool_catalog(settings)
    app.state.compiled_api = compiled
    app.state.tool_catalog = catalog
    logger.info(f"Exposing {len(catalog)} tools to the model")

    app.state.ollama_client = OllamaClient(
        host=settings.ollama_host,
        model=settings.model,
        system_prompt=settings.resolved_system_prompt,
        search_max_results=settings.search_max_results,
    )
    logger.info(f"Initialized Ollama client with host: {settings.ollama_host}")

    app.state.transport = HttpTransport(
        base_url=resolve_base_url(settings, compiled),
        headers=settings.api_headers,
        timeout=settings.tool_timeout_seconds,
    )

    dispatcher = CallDispatcher(
        registry=compiled.registry,
        transport=app.state.transport,
        search_provider=app.state.ollama_client if settings.search_enabled else None,
        timeout=settings.tool_timeout_seconds,
    )

    app.state.orchestrator = ConversationOrchestrator(
        model=app.state.ollama_client,
        dispatcher=dispatcher,
        catalog=catalog,
        store=HistoryStore(settings.resolved_history_path),
        max_iterations=settings.max_tool_iterations,
        model_timeout=settings.model_timeout_seconds,
        welcome_message=settings.welcome_message,
    )
    app.state.orchestrator.restore()

    # Check initial connectivity
    connected = await app.state.ollama_client.check_connection()
    if connected:
        logger.info("Successfully connected to Ollama")
    else:
        logger.warning("Could not connect to Ollama - check if server is running")

    yield

    # Shutdown: cancel in-flight work first so the last history is persisted
    await app.state.orchestrator.close()
    await app.state.transport.close()
    await app.state.ollama_client.close()
    logger.info("Bridge collaborators closed")


def create_app(settings: BridgeSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional BridgeSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from toolbridge.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="toolbridge-server",
        description="Chat with a REST API through an Ollama model using generated tools",
        version=__version__,
        lifespan=lifespan,
    )

    # Store settings in app.state for lifespan access
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(tools.router)
    app.include_router(chat.router)

    return app
