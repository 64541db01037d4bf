"""Loading of REST API descriptions.

The bridge accepts an OpenAPI-style document either as an already parsed
mapping, as JSON/YAML text, or as a path to a file containing either.
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from toolbridge.errors import ApiDescriptionError

logger = logging.getLogger(__name__)


def load_api_description(source: Mapping[str, Any] | str | bytes | Path) -> dict[str, Any]:
    """Parse an API description into a plain dict.

    JSON is tried first since it is the common case and a strict subset of
    YAML; YAML is the fallback.

    Args:
        source: A parsed mapping, raw JSON/YAML text, or a file path

    Returns:
        dict: The parsed document

    Raises:
        ApiDescriptionError: If the source cannot be read or parsed, or
            does not describe any paths
    """
    if isinstance(source, Mapping):
        document: Any = dict(source)
    else:
        if isinstance(source, Path):
            try:
                text = source.read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                raise ApiDescriptionError(
                    f"API description {source} is not valid UTF-8: {e}"
                ) from e
            except OSError as e:
                raise ApiDescriptionError(
                    f"Cannot read API description {source}: {e}"
                ) from e
            logger.debug(f"Read API description from {source}")
        elif isinstance(source, (bytes, bytearray)):
            try:
                text = bytes(source).decode("utf-8")
            except UnicodeDecodeError as e:
                raise ApiDescriptionError(f"API description is not valid UTF-8: {e}") from e
        else:
            text = source

        if not text.strip():
            raise ApiDescriptionError("API description is empty")

        try:
            document = json.loads(text)
        except json.JSONDecodeError:
            try:
                document = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise ApiDescriptionError(f"Invalid API description: {e}") from e

    if not isinstance(document, dict):
        raise ApiDescriptionError("API description must be a mapping at the top level")

    if not isinstance(document.get("paths"), dict):
        raise ApiDescriptionError("API description has no 'paths' section")

    return document


def server_urls(document: Mapping[str, Any]) -> list[str]:
    """Return the server URLs declared by the description, in order."""
    servers = document.get("servers") or []
    if isinstance(servers, dict):
        servers = [servers]

    urls: list[str] = []
    for server in servers:
        if isinstance(server, dict) and server.get("url"):
            urls.append(str(server["url"]))
        elif isinstance(server, str):
            urls.append(server)
    return urls
