"""Dispatching of model-issued tool calls to HTTP operations.

The dispatcher resolves a tool name through the ``OperationRegistry``, maps
the model's free-form arguments onto path, query, header and body slots,
issues the request and returns the outcome as a JSON payload. It never
raises for dispatch-time failures: those come back as
``{"status": "error", "error": ...}`` so the model can see them.

Wire format of parameter values:

- booleans are written as ``true``/``false``
- integral floats for integer parameters are written without a fraction
- query arrays are repeated (``explode``) or comma-joined (``explode: false``);
  ``spaceDelimited``/``pipeDelimited`` styles join with a space or a pipe
- query objects use ``name[key]=value`` for ``deepObject``, key/value pairs
  for exploded ``form``, and JSON text otherwise
- path and header arrays are comma-joined; path values are percent-encoded
"""

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

from toolbridge.dispatch.transport import HttpTransport, TransportResponse
from toolbridge.errors import (
    ArgumentConversionError,
    DispatchError,
    TransportError,
    UnknownToolError,
)
from toolbridge.schema.compiler import OperationRegistry
from toolbridge.schema.types import (
    NodeKind,
    OperationSpec,
    ParameterLocation,
    ParameterSpec,
    SchemaNode,
    ToolDeclaration,
)

logger = logging.getLogger(__name__)

SEARCH_TOOL_NAME = "web_search"
DEFAULT_TIMEOUT_SECONDS = 10.0

_DELIMITERS = {"spaceDelimited": " ", "pipeDelimited": "|"}


class SearchProvider(Protocol):
    """The model provider's own search capability."""

    async def search(self, query: str) -> Any: ...


def search_tool_declaration() -> ToolDeclaration:
    """Declaration of the web search pseudo-tool."""
    return ToolDeclaration(
        name=SEARCH_TOOL_NAME,
        description="Search the web for up-to-date information that the API cannot provide.",
        parameters=SchemaNode(
            kind=NodeKind.OBJECT,
            type="object",
            properties={
                "query": SchemaNode(
                    kind=NodeKind.SCALAR,
                    type="string",
                    description="The search query",
                )
            },
            required=("query",),
        ),
    )


@dataclass
class PreparedRequest:
    """A concrete HTTP request built from a tool call."""

    method: str
    path: str
    params: list[tuple[str, str]] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None


def _scalar_to_wire(value: Any, parameter: ParameterSpec | None = None) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        if parameter is not None and parameter.type == "integer":
            return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value)
    name = parameter.name if parameter is not None else "value"
    raise ArgumentConversionError(
        f"Cannot convert {type(value).__name__} for parameter '{name}' to text"
    )


def _query_pairs(parameter: ParameterSpec, value: Any) -> list[tuple[str, str]]:
    name = parameter.name

    if isinstance(value, list):
        items = [_scalar_to_wire(item, parameter) for item in value]
        if parameter.style in _DELIMITERS:
            return [(name, _DELIMITERS[parameter.style].join(items))]
        if parameter.explode:
            return [(name, item) for item in items]
        return [(name, ",".join(items))]

    if isinstance(value, Mapping):
        if parameter.style == "deepObject":
            return [
                (f"{name}[{key}]", _scalar_to_wire(item, parameter))
                for key, item in value.items()
            ]
        if parameter.style == "form" and parameter.explode:
            return [(str(key), _scalar_to_wire(item, parameter)) for key, item in value.items()]
        return [(name, json.dumps(value, ensure_ascii=False))]

    return [(name, _scalar_to_wire(value, parameter))]


def _simple_value(parameter: ParameterSpec, value: Any, encode: bool) -> str:
    if isinstance(value, Mapping):
        raise ArgumentConversionError(
            f"Parameter '{parameter.name}' does not accept an object"
        )
    items = value if isinstance(value, list) else [value]
    parts = [_scalar_to_wire(item, parameter) for item in items]
    if encode:
        parts = [quote(part, safe="") for part in parts]
    return ",".join(parts)


def prepare_request(operation: OperationSpec, arguments: Mapping[str, Any]) -> PreparedRequest:
    """Map tool arguments onto a concrete request for an operation.

    Declared parameters go to their declared location; the operation's body
    argument (``body`` unless a declared parameter already uses that name)
    becomes the JSON payload verbatim; any other argument is forwarded as a
    query parameter. Missing required query/header parameters are left out
    and the backing API decides whether that is acceptable; a ``None`` value
    counts as missing.

    Raises:
        ArgumentConversionError: If a value cannot be written in its slot or
            a path placeholder has no value
    """
    request = PreparedRequest(method=operation.method, path=operation.path)
    declared = {p.name: p for p in operation.parameters}
    missing_path: list[str] = []

    for parameter in operation.parameters:
        if arguments.get(parameter.name) is None:
            if parameter.location is ParameterLocation.PATH:
                missing_path.append(parameter.name)
            continue

        value = arguments[parameter.name]
        if parameter.location is ParameterLocation.PATH:
            request.path = request.path.replace(
                "{" + parameter.name + "}", _simple_value(parameter, value, encode=True)
            )
        elif parameter.location is ParameterLocation.HEADER:
            request.headers[parameter.name] = _simple_value(parameter, value, encode=False)
        else:
            request.params.extend(_query_pairs(parameter, value))

    if missing_path:
        raise ArgumentConversionError(
            f"Missing path parameter(s) for {operation.path}: {', '.join(missing_path)}"
        )

    for name, value in arguments.items():
        if name in declared or value is None:
            continue
        if name == operation.body_argument:
            request.json = value
            continue
        logger.debug(f"Forwarding undeclared argument '{name}' as query parameter")
        undeclared = ParameterSpec(
            name=name,
            location=ParameterLocation.QUERY,
            schema=SchemaNode(kind=NodeKind.SCALAR, type="string"),
        )
        request.params.extend(_query_pairs(undeclared, value))

    return request


def decode_response(response: TransportResponse) -> Any:
    """Turn a successful response into the result payload."""
    text = response.text
    if not text.strip():
        return {"status": "ok", "status_code": response.status_code}

    if response.is_json or text.lstrip()[0] in "[{":
        try:
            return json.loads(text)
        except ValueError:
            logger.debug("Response declared JSON but did not parse, returning text")
    return text


class CallDispatcher:
    """Executes tool calls against the backing API.

    Attributes:
        registry: Tool name -> operation lookup (read-only)
        transport: HTTP collaborator used for every request
        search_provider: Handles the search pseudo-tool, None when disabled
        timeout: Ceiling in seconds for a single dispatch
    """

    def __init__(
        self,
        registry: OperationRegistry,
        transport: HttpTransport,
        search_provider: SearchProvider | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.registry = registry
        self.transport = transport
        self.search_provider = search_provider
        self.timeout = timeout

    def has_tool(self, tool_name: str) -> bool:
        if tool_name == SEARCH_TOOL_NAME and self.search_provider is not None:
            return True
        return tool_name in self.registry

    async def dispatch(self, tool_name: str, arguments: Any) -> Any:
        """Execute one tool call.

        Args:
            tool_name: Name the model used for the call
            arguments: Argument object produced by the model

        Returns:
            The result payload: the parsed response body on success, or
            ``{"status": "error", "error": ...}`` on any failure
        """
        logger.debug(f"Dispatching {tool_name} with args: {arguments}")

        try:
            if arguments is None:
                arguments = {}
            if not isinstance(arguments, Mapping):
                raise ArgumentConversionError(
                    f"Arguments for {tool_name} must be an object, got {type(arguments).__name__}"
                )

            if tool_name == SEARCH_TOOL_NAME and self.search_provider is not None:
                return await asyncio.wait_for(
                    self._search(self.search_provider, arguments), self.timeout
                )

            operation = self.registry.get(tool_name)
            if operation is None:
                raise UnknownToolError(tool_name)

            request = prepare_request(operation, arguments)
            response = await asyncio.wait_for(
                self.transport.request(
                    request.method,
                    request.path,
                    params=request.params,
                    headers=request.headers,
                    json=request.json,
                ),
                self.timeout,
            )
            return decode_response(response)

        except asyncio.TimeoutError:
            logger.warning(f"{tool_name} timed out after {self.timeout}s")
            return TransportError(
                f"Request for {tool_name} timed out after {self.timeout:g} seconds"
            ).to_payload()
        except DispatchError as e:
            logger.warning(f"{tool_name} failed: {e}")
            return e.to_payload()
        except Exception as e:
            logger.error(f"Error executing {tool_name}: {e}")
            return {"status": "error", "error": f"Error executing {tool_name}: {e}"}

    async def _search(
        self, provider: SearchProvider, arguments: Mapping[str, Any]
    ) -> Any:
        query = str(arguments.get("query") or "").strip()
        if not query:
            raise ArgumentConversionError(f"{SEARCH_TOOL_NAME} requires a non-empty 'query'")

        results = await provider.search(query)
        return {"status": "ok", "query": query, "results": results}
