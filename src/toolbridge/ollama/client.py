"""Async Ollama client wrapper.

This module provides an async wrapper around the ollama.AsyncClient that
plays the model collaborator for the conversation: it sends the turn history
plus the tool catalog and returns the model's text and tool-call requests.
The client is created once at startup and reused.
"""

import json
import logging
import uuid
from collections.abc import Sequence
from typing import Any

import ollama

from toolbridge.conversation.types import (
    ModelReply,
    ModelText,
    ToolCall,
    ToolCallRequest,
    ToolCallResult,
    Turn,
    UserText,
)
from toolbridge.schema.types import ToolDeclaration

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_MAX_RESULTS = 5

# Property keys that survive ollama's tool model and the server's tool template
_OLLAMA_PROPERTY_KEYS = ("type", "items", "description", "enum")


def _get_value(obj: Any, key: str, default: Any = None) -> Any:
    # Responses are pydantic objects, older ollama versions return dicts
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _convert_history_to_ollama_format(
    history: Sequence[Turn], system_prompt: str | None = None
) -> list[dict[str, Any]]:
    """Convert conversation turns to Ollama API format.

    Args:
        history: Ordered conversation turns
        system_prompt: Optional system prompt placed before the history

    Returns:
        List of message dicts in Ollama format: [{"role": "...", "content": "..."}, ...]
    """
    ollama_messages: list[dict[str, Any]] = []
    if system_prompt:
        ollama_messages.append({"role": "system", "content": system_prompt})

    for turn in history:
        if isinstance(turn, UserText):
            ollama_messages.append({"role": "user", "content": turn.text})
        elif isinstance(turn, ModelText):
            ollama_messages.append({"role": "assistant", "content": turn.text})
        elif isinstance(turn, ToolCallRequest):
            ollama_messages.append(
                {
                    "role": "assistant",
                    "content": "",
                    "tool_calls": [
                        {
                            "function": {
                                "name": call.tool_name,
                                "arguments": call.arguments
                                if isinstance(call.arguments, dict)
                                else {},
                            }
                        }
                        for call in turn.calls
                    ],
                }
            )
        elif isinstance(turn, ToolCallResult):
            for result in turn.results:
                ollama_messages.append(
                    {
                        "role": "tool",
                        "tool_name": result.tool_name,
                        "content": json.dumps(result.payload, ensure_ascii=False),
                    }
                )

    return ollama_messages


def _to_ollama_tool(declaration: ToolDeclaration) -> dict[str, Any]:
    """Render a declaration so nested schema detail reaches the model.

    Ollama keeps only type, items, description and enum for each top-level
    property. Anything else (nested properties, required names, union
    variants, formats, defaults) is written into the property description
    as compact JSON, and a union's variant types become its type list.
    """
    tool = declaration.to_ollama_tool()
    properties = tool["function"]["parameters"].get("properties", {})

    for name, schema in list(properties.items()):
        extra = {k: v for k, v in schema.items() if k not in _OLLAMA_PROPERTY_KEYS}
        if not extra:
            continue

        kept = {k: v for k, v in schema.items() if k in _OLLAMA_PROPERTY_KEYS}
        variants = extra.get("oneOf") or extra.get("anyOf") or []
        variant_types = [v.get("type") for v in variants if isinstance(v, dict)]
        if "type" not in kept and variant_types and all(variant_types):
            kept["type"] = list(dict.fromkeys(variant_types))

        detail = json.dumps(extra, ensure_ascii=False, separators=(",", ":"))
        description = (kept.get("description") or "").rstrip(". ")
        kept["description"] = (
            f"{description}. JSON schema: {detail}" if description else f"JSON schema: {detail}"
        )
        properties[name] = kept

    return tool


def _parse_arguments(raw: Any) -> Any:
    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            return json.loads(raw) if raw.strip() else {}
        except ValueError:
            return raw
    if hasattr(raw, "items"):
        return dict(raw)
    return raw


def _parse_reply(response: Any) -> ModelReply:
    message = _get_value(response, "message")
    if message is None:
        message = {}
    content = _get_value(message, "content") or ""

    tool_calls: list[ToolCall] = []
    for raw_call in _get_value(message, "tool_calls") or []:
        function = _get_value(raw_call, "function")
        if function is None:
            function = {}
        call_id = _get_value(raw_call, "id") or uuid.uuid4().hex[:10]
        tool_calls.append(
            ToolCall(
                call_id=str(call_id),
                tool_name=str(_get_value(function, "name") or ""),
                arguments=_parse_arguments(_get_value(function, "arguments")),
            )
        )

    return ModelReply(text=content, tool_calls=tool_calls)


class OllamaClient:
    """Async client for interacting with Ollama API.

    Attributes:
        host: The Ollama server URL (e.g., "http://localhost:11434")
        model: Name of the model used for every conversation turn
        system_prompt: Optional system prompt sent ahead of the history
        options: Optional model parameters (temperature, etc.)
        search_max_results: Result cap for the search capability
        _client: The underlying ollama.AsyncClient instance
    """

    def __init__(
        self,
        host: str,
        model: str,
        system_prompt: str | None = None,
        options: dict[str, Any] | None = None,
        search_max_results: int = DEFAULT_SEARCH_MAX_RESULTS,
    ) -> None:
        """Initialize the Ollama client.

        Args:
            host: The Ollama server URL
            model: The model name to chat with
            system_prompt: Optional system prompt
            options: Optional model parameters
            search_max_results: Maximum number of web search results
        """
        self.host = host
        self.model = model
        self.system_prompt = system_prompt
        self.options = options
        self.search_max_results = search_max_results
        self._client = ollama.AsyncClient(host=host)
        logger.info(f"OllamaClient initialized with host: {host}, model: {model}")

    async def check_connection(self) -> bool:
        """Check if the Ollama server is reachable.

        Returns:
            bool: True if connection is successful, False otherwise
        """
        try:
            # Try to list models as a connectivity check
            await self._client.list()
            logger.debug("Ollama connection check: successful")
            return True
        except Exception as e:
            logger.warning(f"Ollama connection check failed: {e}")
            return False

    async def generate(
        self, history: Sequence[Turn], catalog: Sequence[ToolDeclaration]
    ) -> ModelReply:
        """Send the history and tool catalog to the model.

        Args:
            history: Full ordered conversation history
            catalog: Tool declarations the model may call

        Returns:
            ModelReply: The text and/or tool calls of the response

        Raises:
            Exception: If the Ollama API request fails
        """
        messages = _convert_history_to_ollama_format(history, self.system_prompt)
        tools = [_to_ollama_tool(declaration) for declaration in catalog]

        logger.debug(
            f"Sending {len(messages)} messages and {len(tools)} tools to {self.model}"
        )

        try:
            response = await self._client.chat(
                model=self.model,
                messages=messages,
                tools=tools or None,
                stream=False,
                options=self.options,
            )
        except Exception as e:
            logger.error(f"Ollama chat failed: {e}")
            raise

        reply = _parse_reply(response)
        logger.debug(
            f"Model replied with {len(reply.text)} characters "
            f"and {len(reply.tool_calls)} tool call(s)"
        )
        return reply

    async def search(self, query: str) -> list[dict[str, Any]]:
        """Run a web search through Ollama's search capability.

        Args:
            query: The search query

        Returns:
            list[dict]: Results with title, url and content

        Raises:
            Exception: If the search request fails
        """
        logger.debug(f"Web search: {query!r}")
        response = await self._client.web_search(
            query=query, max_results=self.search_max_results
        )

        results = []
        for item in _get_value(response, "results") or []:
            if hasattr(item, "model_dump"):
                item = item.model_dump()
            results.append(
                {
                    "title": _get_value(item, "title"),
                    "url": _get_value(item, "url"),
                    "content": _get_value(item, "content"),
                }
            )
        return results

    async def close(self) -> None:
        """Close the client and clean up resources.

        ollama.AsyncClient does not need explicit cleanup in current versions.
        """
        logger.debug("OllamaClient closed")
