"""Unit tests for the HTTP transport."""

import json

import httpx
import pytest

from toolbridge.dispatch import HttpTransport
from toolbridge.errors import TransportError


def _transport(handler) -> HttpTransport:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        headers={"GROCY-API-KEY": "secret"},
    )
    return HttpTransport(base_url="http://pantry.test/api/", client=client)


def test_build_url():
    """Test that paths are joined to the base URL."""
    transport = HttpTransport(base_url="http://pantry.test/api/")

    assert transport.base_url == "http://pantry.test/api"
    assert transport.build_url("/objects/products") == "http://pantry.test/api/objects/products"
    assert transport.build_url("") == "http://pantry.test/api"


@pytest.mark.asyncio
async def test_request_success():
    """Test a successful request with query, headers and JSON body."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers.get("GROCY-API-KEY")
        seen["trace"] = request.headers.get("X-Trace")
        seen["body"] = request.content
        return httpx.Response(200, json={"created_object_id": 7})

    transport = _transport(handler)
    response = await transport.request(
        "POST",
        "/objects/products",
        params=[("a", "1"), ("a", "2")],
        headers={"X-Trace": "abc"},
        json={"name": "Milk"},
    )
    await transport.close()

    assert response.status_code == 200
    assert response.is_json
    assert json.loads(response.text) == {"created_object_id": 7}
    assert seen["method"] == "POST"
    assert seen["url"] == "http://pantry.test/api/objects/products?a=1&a=2"
    assert seen["api_key"] == "secret"
    assert seen["trace"] == "abc"
    assert json.loads(seen["body"]) == {"name": "Milk"}


@pytest.mark.asyncio
async def test_request_without_body_sends_no_content():
    """Test that no JSON payload is sent when json is None."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content
        return httpx.Response(204)

    transport = _transport(handler)
    response = await transport.request("DELETE", "/objects/products/1")

    assert response.status_code == 204
    assert response.text == ""
    assert seen["body"] == b""


@pytest.mark.asyncio
async def test_request_http_error():
    """Test that a non-2xx status raises TransportError with the status code."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error_message": "Provided amount is invalid"})

    transport = _transport(handler)

    with pytest.raises(TransportError) as exc_info:
        await transport.request("POST", "/stock/products/1/consume")

    assert exc_info.value.status_code == 400
    assert str(exc_info.value).startswith("HTTP 400: ")
    assert "Provided amount is invalid" in str(exc_info.value)


@pytest.mark.asyncio
async def test_request_http_error_without_body():
    """Test that the reason phrase is used when the error body is empty."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    transport = _transport(handler)

    with pytest.raises(TransportError, match="HTTP 404: Not Found"):
        await transport.request("GET", "/objects/products/99")


@pytest.mark.asyncio
async def test_request_long_error_body_is_truncated():
    """Test that long upstream error bodies are cut."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="x" * 2000)

    transport = _transport(handler)

    with pytest.raises(TransportError) as exc_info:
        await transport.request("GET", "/system/info")

    assert len(str(exc_info.value)) < 600


@pytest.mark.asyncio
async def test_request_network_error():
    """Test that a network failure raises TransportError without status code."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = _transport(handler)

    with pytest.raises(TransportError) as exc_info:
        await transport.request("GET", "/system/info")

    assert exc_info.value.status_code is None
    assert "Network error" in str(exc_info.value)


def test_configured_timeout_is_applied():
    """Test that the tool timeout replaces httpx's default ceiling."""
    transport = HttpTransport(base_url="http://pantry.test/api", timeout=30.0)

    assert transport._client.timeout.read == 30.0
    assert transport._client.timeout.connect == 30.0


def test_no_timeout():
    """Test that None disables the client-side timeout."""
    transport = HttpTransport(base_url="http://pantry.test/api")

    assert transport._client.timeout.read is None


@pytest.mark.asyncio
async def test_request_timeout_names_the_cause():
    """Test that a timeout error carries a readable message."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("", request=request)

    transport = _transport(handler)

    with pytest.raises(TransportError) as exc_info:
        await transport.request("GET", "/slow")

    assert exc_info.value.status_code is None
    assert str(exc_info.value) == "Request timed out (ReadTimeout)"


@pytest.mark.asyncio
async def test_request_network_error_without_message():
    """Test that an exception with an empty message still names its type."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("", request=request)

    transport = _transport(handler)

    with pytest.raises(TransportError, match="Network error: ConnectError"):
        await transport.request("GET", "/system/info")
