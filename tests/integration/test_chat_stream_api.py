"""Integration tests for the streaming chat API endpoint.

This module tests the SSE streaming chat endpoint including:
- Visible message events for a plain answer
- Tool progress updates
- Message persistence after streaming
- Error scenarios
"""

import json

import pytest
from httpx import AsyncClient

from toolbridge.conversation import ModelReply, ToolCall


def _parse_events(text: str) -> list[dict]:
    events = []
    # Normalize line endings and split by double newline
    normalized_text = text.replace("\r\n", "\n")
    for chunk in normalized_text.strip().split("\n\n"):
        if not chunk.strip():
            continue
        event_type = None
        event_data = None
        for part in chunk.split("\n"):
            if part.startswith("event:"):
                event_type = part.split(":", 1)[1].strip()
            elif part.startswith("data:"):
                event_data = part.split(":", 1)[1].strip()
        if event_type and event_data:
            events.append({"event": event_type, "data": json.loads(event_data)})
    return events


@pytest.mark.asyncio
async def test_stream_chat_basic(async_client: AsyncClient):
    """Test the event sequence for a plain answer."""
    response = await async_client.post("/api/v1/chat/stream", json={"message": "Hi!"})
    assert response.status_code == 200

    events = _parse_events(response.text)

    assert [e["event"] for e in events] == [
        "message_appended",
        "message_appended",
        "message_updated",
        "done",
    ]
    assert events[0]["data"] == {"text": "Hi!", "is_user": True, "is_loading": False}
    assert events[1]["data"] == {"text": "", "is_user": False, "is_loading": True}
    assert events[2]["data"] == {
        "text": "Hello from the model",
        "is_user": False,
        "is_loading": False,
    }
    assert events[3]["data"] == {"state": "idle", "round_trips": 1, "limit_reached": False}


@pytest.mark.asyncio
async def test_stream_chat_tool_progress(async_client: AsyncClient, mock_ollama_client):
    """Test that tool execution shows up as a progress update."""
    mock_ollama_client.generate.side_effect = [
        ModelReply(
            tool_calls=[
                ToolCall("c1", "get_objects_products", {"limit": 2}),
                ToolCall("c2", "get_objects_products_productId", {"productId": 1}),
            ]
        ),
        ModelReply(text="Two products found."),
    ]

    response = await async_client.post(
        "/api/v1/chat/stream", json={"message": "List products"}
    )
    assert response.status_code == 200

    events = _parse_events(response.text)
    updates = [e["data"] for e in events if e["event"] == "message_updated"]

    assert updates[0]["text"] == (
        "Calling get_objects_products, get_objects_products_productId..."
    )
    assert updates[0]["is_loading"] is True
    assert updates[-1]["text"] == "Two products found."
    assert updates[-1]["is_loading"] is False
    assert events[-1]["event"] == "done"
    assert events[-1]["data"]["round_trips"] == 2


@pytest.mark.asyncio
async def test_stream_chat_persists_messages(async_client: AsyncClient):
    """Test that the streamed exchange is visible afterwards."""
    await async_client.post("/api/v1/chat/stream", json={"message": "Hi!"})

    response = await async_client.get("/api/v1/chat/messages")

    assert [m["text"] for m in response.json()["messages"]] == [
        "Welcome!",
        "Hi!",
        "Hello from the model",
    ]


@pytest.mark.asyncio
async def test_stream_chat_model_failure(async_client: AsyncClient, mock_ollama_client):
    """Test that a model failure is reported in the final message."""
    mock_ollama_client.generate.side_effect = Exception("Connection lost")

    response = await async_client.post("/api/v1/chat/stream", json={"message": "Hi"})
    assert response.status_code == 200

    events = _parse_events(response.text)

    assert events[-2]["event"] == "message_updated"
    assert events[-2]["data"]["text"] == "Sorry, I encountered an error: Connection lost"
    assert events[-1] == {
        "event": "done",
        "data": {"state": "error_reported", "round_trips": 0, "limit_reached": False},
    }


@pytest.mark.asyncio
async def test_stream_chat_empty_message(async_client: AsyncClient):
    """Test that blank messages are rejected before streaming starts."""
    response = await async_client.post("/api/v1/chat/stream", json={"message": ""})

    assert response.status_code == 400
    assert response.json()["detail"]["error"]["code"] == "empty_message"


@pytest.mark.asyncio
async def test_stream_chat_busy(async_client: AsyncClient, test_app):
    """Test that streaming is rejected while a message is in flight."""
    orchestrator = test_app.state.orchestrator
    orchestrator._in_flight = True
    try:
        response = await async_client.post("/api/v1/chat/stream", json={"message": "Hi"})
    finally:
        orchestrator._in_flight = False

    assert response.status_code == 409
    assert response.json()["detail"]["error"]["code"] == "conversation_busy"
