"""Unit tests for the OllamaClient wrapper."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import ollama
import pytest

from toolbridge.conversation import (
    ModelText,
    ToolCall,
    ToolCallRequest,
    ToolCallResult,
    ToolResult,
    UserText,
)
from toolbridge.ollama import OllamaClient
from toolbridge.ollama.client import _convert_history_to_ollama_format, _to_ollama_tool
from toolbridge.schema import compile_api_description


@pytest.fixture
def mock_ollama_async_client():
    """Create a mock ollama.AsyncClient."""
    with patch("toolbridge.ollama.client.ollama.AsyncClient") as mock_class:
        mock_instance = AsyncMock()
        mock_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def ollama_client(mock_ollama_async_client):
    """Create an OllamaClient with mocked AsyncClient."""
    return OllamaClient(
        host="http://localhost:11434",
        model="qwen3:8b",
        system_prompt="You are helpful.",
        search_max_results=3,
    )


@pytest.mark.asyncio
async def test_client_initialization():
    """Test that OllamaClient initializes correctly."""
    with patch("toolbridge.ollama.client.ollama.AsyncClient") as mock_class:
        client = OllamaClient(host="http://test:11434", model="llama3.2")
        assert client.host == "http://test:11434"
        assert client.model == "llama3.2"
        mock_class.assert_called_once_with(host="http://test:11434")


@pytest.mark.asyncio
async def test_check_connection_success(ollama_client, mock_ollama_async_client):
    """Test successful connection check."""
    mock_ollama_async_client.list.return_value = {"models": []}

    result = await ollama_client.check_connection()

    assert result is True
    mock_ollama_async_client.list.assert_called_once()


@pytest.mark.asyncio
async def test_check_connection_failure(ollama_client, mock_ollama_async_client):
    """Test connection check when Ollama is unreachable."""
    mock_ollama_async_client.list.side_effect = Exception("Connection refused")

    result = await ollama_client.check_connection()

    assert result is False


def test_convert_history():
    """Test conversion of every turn type to Ollama messages."""
    history = [
        ModelText("Welcome!"),
        UserText("How much milk?"),
        ToolCallRequest(
            calls=[
                ToolCall("1", "get_stock_products_productId", {"productId": 3}),
                ToolCall("2", "get_objects_locations", {}),
            ]
        ),
        ToolCallResult(
            results=[
                ToolResult("1", "get_stock_products_productId", {"stock_amount": 2}),
                ToolResult("2", "get_objects_locations", {"status": "error", "error": "HTTP 500: x"}),
            ]
        ),
        ModelText("You have 2 litres."),
    ]

    messages = _convert_history_to_ollama_format(history, system_prompt="Be brief.")

    assert messages[0] == {"role": "system", "content": "Be brief."}
    assert messages[1] == {"role": "assistant", "content": "Welcome!"}
    assert messages[2] == {"role": "user", "content": "How much milk?"}
    assert messages[3]["role"] == "assistant"
    assert messages[3]["tool_calls"] == [
        {"function": {"name": "get_stock_products_productId", "arguments": {"productId": 3}}},
        {"function": {"name": "get_objects_locations", "arguments": {}}},
    ]
    assert messages[4] == {
        "role": "tool",
        "tool_name": "get_stock_products_productId",
        "content": json.dumps({"stock_amount": 2}),
    }
    assert messages[5]["tool_name"] == "get_objects_locations"
    assert json.loads(messages[5]["content"])["status"] == "error"
    assert messages[6] == {"role": "assistant", "content": "You have 2 litres."}


def test_convert_history_without_system_prompt():
    """Test that no system message is added without a prompt."""
    messages = _convert_history_to_ollama_format([UserText("Hi")])
    assert messages == [{"role": "user", "content": "Hi"}]


@pytest.mark.asyncio
async def test_generate_text(ollama_client, mock_ollama_async_client, api_description):
    """Test a plain-text reply and the request sent to Ollama."""
    mock_ollama_async_client.chat.return_value = {
        "message": {"role": "assistant", "content": "Hello there!"},
        "done": True,
    }
    catalog = compile_api_description(api_description).catalog

    reply = await ollama_client.generate([UserText("Hi")], catalog)

    assert reply.text == "Hello there!"
    assert reply.tool_calls == []

    kwargs = mock_ollama_async_client.chat.call_args.kwargs
    assert kwargs["model"] == "qwen3:8b"
    assert kwargs["stream"] is False
    assert kwargs["messages"][0] == {"role": "system", "content": "You are helpful."}
    assert [t["function"]["name"] for t in kwargs["tools"]] == [t.name for t in catalog]


@pytest.mark.asyncio
async def test_generate_wire_payload_keeps_body_schema(api_description):
    """Test that nested request-body schema reaches Ollama over the wire."""
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={
                "model": "qwen3:8b",
                "created_at": "2024-01-01T00:00:00Z",
                "message": {"role": "assistant", "content": "ok"},
                "done": True,
            },
        )

    client = OllamaClient(host="http://ollama.test", model="qwen3:8b")
    client._client = ollama.AsyncClient(
        host="http://ollama.test", transport=httpx.MockTransport(handler)
    )
    catalog = compile_api_description(api_description).catalog

    reply = await client.generate([UserText("Add milk")], catalog)

    assert reply.text == "ok"
    tools = {t["function"]["name"]: t["function"] for t in sent[0]["tools"]}
    body = tools["post_objects_products"]["parameters"]["properties"]["body"]
    assert body["type"] == "object"
    assert tools["post_objects_products"]["parameters"]["required"] == ["body"]

    detail = json.loads(body["description"].split("JSON schema: ", 1)[1])
    assert set(detail["properties"]) == {"id", "name", "location"}
    assert detail["properties"]["location"]["oneOf"] == [
        {"type": "integer"},
        {"type": "string"},
    ]
    assert "name" in detail["required"]


def test_to_ollama_tool_folds_dropped_keys():
    """Test union types and formats on top-level properties."""
    description = {
        "openapi": "3.0.3",
        "paths": {
            "/items": {
                "get": {
                    "parameters": [
                        {
                            "name": "since",
                            "in": "query",
                            "description": "Lower bound.",
                            "schema": {"type": "string", "format": "date"},
                        },
                        {
                            "name": "key",
                            "in": "query",
                            "schema": {"oneOf": [{"type": "integer"}, {"type": "string"}]},
                        },
                        {"name": "limit", "in": "query", "schema": {"type": "integer"}},
                    ]
                }
            }
        },
    }
    declaration = compile_api_description(description).catalog[0]

    properties = _to_ollama_tool(declaration)["function"]["parameters"]["properties"]

    assert properties["since"] == {
        "type": "string",
        "description": 'Lower bound. JSON schema: {"format":"date"}',
    }
    assert properties["key"]["type"] == ["integer", "string"]
    assert "oneOf" not in properties["key"]
    assert properties["key"]["description"].startswith("JSON schema: ")
    assert properties["limit"] == {"type": "integer"}
    # The declaration itself still carries the full schema
    assert declaration.to_ollama_tool()["function"]["parameters"]["properties"]["key"][
        "oneOf"
    ] == [{"type": "integer"}, {"type": "string"}]


@pytest.mark.asyncio
async def test_generate_without_tools(ollama_client, mock_ollama_async_client):
    """Test that an empty catalog sends no tools."""
    mock_ollama_async_client.chat.return_value = {"message": {"content": "Hi"}}

    await ollama_client.generate([UserText("Hi")], [])

    assert mock_ollama_async_client.chat.call_args.kwargs["tools"] is None


@pytest.mark.asyncio
async def test_generate_tool_calls(ollama_client, mock_ollama_async_client):
    """Test that tool calls are parsed and receive ids."""
    mock_ollama_async_client.chat.return_value = {
        "message": {
            "role": "assistant",
            "content": "",
            "tool_calls": [
                {"function": {"name": "get_objects_products", "arguments": {"limit": 5}}},
                {"function": {"name": "get_system_info", "arguments": "{}"}},
            ],
        }
    }

    reply = await ollama_client.generate([UserText("Products?")], [])

    assert reply.text == ""
    assert [c.tool_name for c in reply.tool_calls] == ["get_objects_products", "get_system_info"]
    assert reply.tool_calls[0].arguments == {"limit": 5}
    assert reply.tool_calls[1].arguments == {}
    ids = [c.call_id for c in reply.tool_calls]
    assert all(ids) and len(set(ids)) == 2


@pytest.mark.asyncio
async def test_generate_object_response(ollama_client, mock_ollama_async_client):
    """Test parsing of attribute-style response objects."""
    function = MagicMock()
    function.name = "get_stock"
    function.arguments = {"a": 1}
    raw_call = MagicMock(spec=["function"])
    raw_call.function = function
    message = MagicMock()
    message.content = "Checking."
    message.tool_calls = [raw_call]
    response = MagicMock()
    response.message = message
    mock_ollama_async_client.chat.return_value = response

    reply = await ollama_client.generate([UserText("Stock?")], [])

    assert reply.text == "Checking."
    assert reply.tool_calls[0].tool_name == "get_stock"
    assert reply.tool_calls[0].arguments == {"a": 1}


@pytest.mark.asyncio
async def test_generate_failure(ollama_client, mock_ollama_async_client):
    """Test that chat failures propagate."""
    mock_ollama_async_client.chat.side_effect = Exception("model not found")

    with pytest.raises(Exception, match="model not found"):
        await ollama_client.generate([UserText("Hi")], [])


@pytest.mark.asyncio
async def test_search(ollama_client, mock_ollama_async_client):
    """Test the web search capability."""
    mock_ollama_async_client.web_search.return_value = {
        "results": [
            {"title": "Milk", "url": "https://example.com/milk", "content": "Keeps 7 days."}
        ]
    }

    results = await ollama_client.search("milk shelf life")

    assert results == [
        {"title": "Milk", "url": "https://example.com/milk", "content": "Keeps 7 days."}
    ]
    mock_ollama_async_client.web_search.assert_awaited_once_with(
        query="milk shelf life", max_results=3
    )
