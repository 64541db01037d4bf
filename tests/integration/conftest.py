"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures that replace the
Ollama client and the backing-API transport before the app starts.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolbridge.conversation import ModelReply
from toolbridge.dispatch import TransportResponse


@pytest.fixture(autouse=True)
def mock_ollama_client():
    """Mock OllamaClient for all integration tests.

    This fixture patches the OllamaClient class before the app is created,
    ensuring the lifespan uses our mock instead of creating a real client.
    """
    with patch("toolbridge.app.OllamaClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.host = "http://localhost:11434"
        mock_instance.model = "test-model"
        mock_instance.check_connection.return_value = True
        mock_instance.generate.return_value = ModelReply(text="Hello from the model")

        mock_client_class.return_value = mock_instance

        yield mock_instance


@pytest.fixture(autouse=True)
def mock_transport():
    """Mock HttpTransport so no request leaves the test process."""
    with patch("toolbridge.app.HttpTransport") as mock_transport_class:
        mock_instance = MagicMock()
        mock_instance.request = AsyncMock(
            return_value=TransportResponse(
                status_code=200,
                text='{"ok": true}',
                content_type="application/json",
            )
        )
        mock_instance.close = AsyncMock()

        mock_transport_class.return_value = mock_instance

        yield mock_instance
