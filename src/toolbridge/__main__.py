"""CLI entry point for toolbridge.

This module provides the command-line interface for starting the server.
It can be invoked as `toolbridge-server` (via the script entry point) or
`python -m toolbridge`.
"""

import argparse
import json
import logging
import sys

import uvicorn

from toolbridge import __version__, create_app
from toolbridge.app import load_tool_catalog
from toolbridge.config import BridgeSettings
from toolbridge.errors import SchemaError

logger = logging.getLogger(__name__)


def print_tools(settings: BridgeSettings) -> int:
    """Compile the API description and print the tool catalog as JSON.

    Returns:
        int: Process exit code (1 if compilation fails)
    """
    try:
        _, catalog = load_tool_catalog(settings)
    except SchemaError as e:
        logger.error(f"Failed to compile API description: {e}")
        return 1

    tools = [declaration.to_ollama_tool() for declaration in catalog]
    print(json.dumps(tools, indent=2, ensure_ascii=False))
    return 0


def main() -> int:
    """Main entry point for the toolbridge CLI.

    Parses command-line arguments and starts the uvicorn server with the
    FastAPI application.
    """
    parser = argparse.ArgumentParser(
        prog="toolbridge-server",
        description="Chat with a REST API through an Ollama model using generated tools",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"toolbridge-server {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via TOOLBRIDGE_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via TOOLBRIDGE_PORT)",
    )

    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via TOOLBRIDGE_OLLAMA_HOST)",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Ollama model with tool support (can be set via TOOLBRIDGE_MODEL)",
    )

    parser.add_argument(
        "--api-description",
        type=str,
        default=None,
        help="OpenAPI document, relative to the data dir (can be set via TOOLBRIDGE_API_DESCRIPTION_PATH)",
    )

    parser.add_argument(
        "--api-base-url",
        type=str,
        default=None,
        help="Base URL of the backing API (default: first server URL of the description)",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Base directory for all data (default: ., can be set via TOOLBRIDGE_DATA_DIR)",
    )

    parser.add_argument(
        "--search",
        action="store_true",
        default=None,
        help="Expose the web search tool to the model (can be set via TOOLBRIDGE_SEARCH_ENABLED)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via TOOLBRIDGE_LOG_LEVEL)",
    )

    parser.add_argument(
        "--print-tools",
        action="store_true",
        help="Print the generated tool catalog as JSON and exit",
    )

    args = parser.parse_args()

    # Build settings, CLI args override environment variables
    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.ollama_host is not None:
        settings_kwargs["ollama_host"] = args.ollama_host
    if args.model is not None:
        settings_kwargs["model"] = args.model
    if args.api_description is not None:
        settings_kwargs["api_description_path"] = args.api_description
    if args.api_base_url is not None:
        settings_kwargs["api_base_url"] = args.api_base_url
    if args.data_dir is not None:
        settings_kwargs["data_dir"] = args.data_dir
    if args.search is not None:
        settings_kwargs["search_enabled"] = args.search
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level

    settings = BridgeSettings(**settings_kwargs)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.print_tools:
        return print_tools(settings)

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
