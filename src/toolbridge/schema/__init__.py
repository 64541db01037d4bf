"""API description loading, reference resolution and tool compilation.

This package turns an OpenAPI-style REST description into the tool catalog
exposed to the model and the registry used to dispatch the model's calls.
"""

from toolbridge.schema.compiler import (
    CompiledApi,
    OperationRegistry,
    compile_api_description,
    make_tool_name,
)
from toolbridge.schema.loader import load_api_description, server_urls
from toolbridge.schema.resolver import SchemaResolver
from toolbridge.schema.types import (
    BODY_PARAMETER,
    NodeKind,
    OperationSpec,
    ParameterLocation,
    ParameterSpec,
    SchemaNode,
    ToolDeclaration,
)

__all__ = [
    # Compilation
    "compile_api_description",
    "load_api_description",
    "make_tool_name",
    "server_urls",
    "CompiledApi",
    "OperationRegistry",
    "SchemaResolver",
    "BODY_PARAMETER",
    # Types
    "NodeKind",
    "OperationSpec",
    "ParameterLocation",
    "ParameterSpec",
    "SchemaNode",
    "ToolDeclaration",
]
