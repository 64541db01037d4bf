"""Pytest configuration and shared fixtures for toolbridge tests.

This module provides common fixtures used across all test modules,
including a sample API description, test app creation and async client setup.
"""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from toolbridge import create_app
from toolbridge.config import BridgeSettings

SAMPLE_API = {
    "openapi": "3.0.3",
    "info": {"title": "Pantry API", "version": "1.0.0"},
    "servers": [{"url": "http://pantry.test/api"}],
    "paths": {
        "/objects/products": {
            "get": {
                "summary": "List products",
                "description": "Returns all products.",
                "parameters": [
                    {
                        "name": "query[]",
                        "in": "query",
                        "description": "Filter conditions",
                        "schema": {"type": "array", "items": {"type": "string"}},
                    },
                    {
                        "name": "limit",
                        "in": "query",
                        "schema": {"type": "integer"},
                    },
                ],
            },
            "post": {
                "summary": "Create a product",
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {
                            "schema": {"$ref": "#/components/schemas/Product"}
                        }
                    },
                },
            },
        },
        "/objects/products/{productId}": {
            "parameters": [{"$ref": "#/components/parameters/ProductId"}],
            "get": {"summary": "Get a product"},
            "delete": {"summary": "Delete a product"},
        },
        "/stock/products/{productId}/consume": {
            "post": {
                "summary": "Consume stock",
                "parameters": [
                    {"name": "productId", "in": "path", "required": True, "schema": {"type": "integer"}},
                    {"name": "amount", "in": "query", "schema": {"type": "number"}},
                    {
                        "name": "transaction_type",
                        "in": "query",
                        "schema": {"$ref": "#/components/schemas/TransactionType"},
                    },
                ],
            }
        },
    },
    "components": {
        "parameters": {
            "ProductId": {
                "name": "productId",
                "in": "path",
                "required": True,
                "description": "Product id",
                "schema": {"type": "integer"},
            }
        },
        "schemas": {
            "TransactionType": {
                "type": "string",
                "enum": ["consume", "purchase", "inventory-correction"],
            },
            "Entity": {
                "type": "object",
                "description": "A stored object",
                "properties": {"id": {"type": "integer"}},
                "required": ["id"],
            },
            "Product": {
                "allOf": [
                    {"$ref": "#/components/schemas/Entity"},
                    {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "location": {
                                "oneOf": [{"type": "integer"}, {"type": "string"}]
                            },
                        },
                        "required": ["name"],
                    },
                ]
            },
        },
    },
}


@pytest.fixture
def api_description():
    """A fresh copy of the sample API description."""
    return json.loads(json.dumps(SAMPLE_API))


@pytest.fixture
def test_settings(tmp_path, api_description):
    """Create test settings with an isolated data directory.

    The sample API description is written to ``openapi.json`` inside it.

    Args:
        tmp_path: Pytest fixture providing a temporary directory.
        api_description: The sample API description.

    Returns:
        BridgeSettings: Settings instance configured for testing.
    """
    (tmp_path / "openapi.json").write_text(json.dumps(api_description), encoding="utf-8")
    return BridgeSettings(
        host="127.0.0.1",
        port=8000,
        ollama_host="http://localhost:11434",
        model="test-model",
        data_dir=str(tmp_path),
        api_description_path="openapi.json",
        history_file="chat_history.json",
        welcome_message="Welcome!",
        max_tool_iterations=3,
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance.

    Args:
        test_settings: Test settings fixture.

    Returns:
        FastAPI: Configured test application.
    """
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Args:
        test_app: Test application fixture.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
