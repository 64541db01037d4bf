"""Tool-call execution against the backing REST API.

This package provides the HTTP transport and the dispatcher that turns a
model-issued tool call into a concrete request and a JSON result payload.
"""

from toolbridge.dispatch.dispatcher import (
    SEARCH_TOOL_NAME,
    CallDispatcher,
    PreparedRequest,
    SearchProvider,
    decode_response,
    prepare_request,
    search_tool_declaration,
)
from toolbridge.dispatch.transport import HttpTransport, TransportResponse

__all__ = [
    "CallDispatcher",
    "HttpTransport",
    "PreparedRequest",
    "SearchProvider",
    "TransportResponse",
    "SEARCH_TOOL_NAME",
    "decode_response",
    "prepare_request",
    "search_tool_declaration",
]
