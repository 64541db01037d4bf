"""Compilation of an API description into tool declarations.

``compile_api_description`` walks every operation of the description and
produces two things that are kept strictly 1:1:

- the tool catalog handed to the model, and
- the ``OperationRegistry`` that maps each tool name back to its operation.

Any resolution problem aborts compilation; there is no partial result.
"""

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from toolbridge.errors import ApiDescriptionError, ToolNameCollisionError
from toolbridge.schema.loader import server_urls
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

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "patch", "delete")

_PLACEHOLDER = re.compile(r"{([^{}]+)}")
_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")


def make_tool_name(method: str, path: str) -> str:
    """Derive the tool name for an operation.

    Example:
        >>> make_tool_name("get", "/objects/{entity}")
        'get_objects_entity'
    """
    stripped = path.replace("{", "").replace("}", "")
    return method.lower() + _NON_IDENTIFIER.sub("_", stripped.replace("/", "_"))


def build_description(path: str, summary: str | None, description: str | None) -> str:
    """Build the tool description: the path followed by summary and description."""
    summary_part = (summary or "").strip()
    description_part = (description or "").strip()

    if not summary_part:
        text = description_part
    elif not description_part:
        text = summary_part
    else:
        text = f"{summary_part.rstrip('.')}. {description_part}"

    return f"{path} {text}".strip()


class OperationRegistry(Mapping[str, OperationSpec]):
    """Read-only mapping from tool name to ``OperationSpec``.

    The registry is built from a fully compiled set of operations and
    cannot be modified afterwards.
    """

    def __init__(self, operations: Iterable[OperationSpec]) -> None:
        self._operations = MappingProxyType(
            {operation.tool_name: operation for operation in operations}
        )

    def __getitem__(self, tool_name: str) -> OperationSpec:
        return self._operations[tool_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def names(self) -> list[str]:
        return list(self._operations)


@dataclass(frozen=True)
class CompiledApi:
    """Result of compiling an API description.

    Attributes:
        catalog: Tool declarations in description order
        registry: Tool name -> operation lookup
        server_urls: Server URLs declared by the description
    """

    catalog: tuple[ToolDeclaration, ...]
    registry: OperationRegistry
    server_urls: tuple[str, ...] = field(default_factory=tuple)


def compile_api_description(
    document: Mapping[str, Any],
    reserved_names: Iterable[str] = (),
) -> CompiledApi:
    """Compile an API description into a tool catalog and registry.

    Args:
        document: Parsed API description (see ``load_api_description``)
        reserved_names: Tool names already taken by pseudo-tools

    Returns:
        CompiledApi: The catalog and the matching registry

    Raises:
        ApiDescriptionError: If the document has no paths
        SchemaResolutionError: If a reference cannot be resolved
        SchemaCycleError: If references form a cycle
        ToolNameCollisionError: If two operations derive the same tool name
    """
    paths = document.get("paths")
    if not isinstance(paths, Mapping):
        raise ApiDescriptionError("API description has no 'paths' section")

    resolver = SchemaResolver(document)
    origins: dict[str, str] = {name: "a reserved tool" for name in reserved_names}
    operations: list[OperationSpec] = []
    catalog: list[ToolDeclaration] = []

    for path, raw_path_item in paths.items():
        path_item = resolver.deref(raw_path_item) or {}
        shared_parameters = path_item.get("parameters") or []

        for method in HTTP_METHODS:
            raw_operation = path_item.get(method)
            if not isinstance(raw_operation, Mapping):
                continue

            tool_name = make_tool_name(method, path)
            origin = f"{method.upper()} {path}"
            if tool_name in origins:
                raise ToolNameCollisionError(tool_name, origins[tool_name], origin)
            origins[tool_name] = origin

            operation = _compile_operation(
                resolver, tool_name, method, path, raw_operation, shared_parameters
            )
            operations.append(operation)
            catalog.append(_declare(operation))
            logger.debug(
                f"Compiled {origin} as {tool_name} "
                f"({len(operation.parameters)} parameters, body={operation.body is not None})"
            )

    registry = OperationRegistry(operations)
    logger.info(
        f"Compiled {len(registry)} operations "
        f"({len(resolver.resolved_refs)} shared schemas resolved)"
    )
    return CompiledApi(
        catalog=tuple(catalog),
        registry=registry,
        server_urls=tuple(server_urls(document)),
    )


def _compile_operation(
    resolver: SchemaResolver,
    tool_name: str,
    method: str,
    path: str,
    raw_operation: Mapping[str, Any],
    shared_parameters: list[Any],
) -> OperationSpec:
    placeholders = set(_PLACEHOLDER.findall(path))

    # Operation-level parameters override path-level ones with the same name+location
    merged: dict[tuple[str, str], ParameterSpec] = {}
    for raw_parameter in [*shared_parameters, *(raw_operation.get("parameters") or [])]:
        parameter = _compile_parameter(resolver, raw_parameter, placeholders)
        if parameter is not None:
            merged[(parameter.name, parameter.location.value)] = parameter

    for name in sorted(placeholders):
        if (name, ParameterLocation.PATH.value) not in merged:
            merged[(name, ParameterLocation.PATH.value)] = ParameterSpec(
                name=name,
                location=ParameterLocation.PATH,
                schema=SchemaNode(kind=NodeKind.SCALAR, type="string"),
                required=True,
                style="simple",
                explode=False,
            )

    body: SchemaNode | None = None
    body_required = False
    raw_body = raw_operation.get("requestBody")
    if raw_body is not None:
        request_body = resolver.deref(raw_body) or {}
        body_schema = _json_body_schema(request_body)
        if body_schema is not None:
            body = resolver.resolve(body_schema)
            body_required = bool(request_body.get("required", False))

    body_argument = BODY_PARAMETER
    if body is not None:
        taken = {name for name, _ in merged}
        while body_argument in taken:
            body_argument = "request_" + body_argument
        if body_argument != BODY_PARAMETER:
            logger.debug(
                f"{method.upper()} {path} declares a '{BODY_PARAMETER}' parameter, "
                f"request body exposed as '{body_argument}'"
            )

    return OperationSpec(
        tool_name=tool_name,
        method=method.upper(),
        path=path,
        parameters=tuple(merged.values()),
        body=body,
        body_required=body_required,
        body_argument=body_argument,
        summary=raw_operation.get("summary"),
        description=raw_operation.get("description"),
        tags=tuple(raw_operation.get("tags") or ()),
    )


def _compile_parameter(
    resolver: SchemaResolver,
    raw_parameter: Any,
    placeholders: set[str],
) -> ParameterSpec | None:
    parameter = resolver.deref(raw_parameter)
    if not isinstance(parameter, Mapping) or not parameter.get("name"):
        return None

    name = parameter["name"]
    raw_location = parameter.get("in")
    if raw_location is None:
        location = (
            ParameterLocation.PATH if name in placeholders else ParameterLocation.QUERY
        )
    else:
        try:
            location = ParameterLocation(raw_location)
        except ValueError:
            logger.debug(f"Skipping {raw_location} parameter '{name}'")
            return None

    if "schema" in parameter:
        schema = resolver.resolve(parameter["schema"])
    else:
        schema = SchemaNode(kind=NodeKind.SCALAR, type="string")

    default_style = "form" if location is ParameterLocation.QUERY else "simple"
    style = parameter.get("style") or default_style
    explode = parameter.get("explode", style == "form")

    return ParameterSpec(
        name=name,
        location=location,
        schema=schema,
        required=bool(parameter.get("required", location is ParameterLocation.PATH)),
        description=parameter.get("description"),
        style=style,
        explode=bool(explode),
    )


def _json_body_schema(request_body: Mapping[str, Any]) -> Any:
    content = request_body.get("content") or {}
    media = content.get("application/json")
    if media is None:
        # Fall back to the first JSON-like media type
        media = next(
            (v for k, v in content.items() if "json" in k),
            None,
        )
    if not isinstance(media, Mapping):
        return None
    return media.get("schema")


def _declare(operation: OperationSpec) -> ToolDeclaration:
    properties: dict[str, SchemaNode] = {}
    required: list[str] = []

    for parameter in operation.parameters:
        node = parameter.schema
        if parameter.description and not node.description:
            node = _with_description(node, parameter.description)
        properties[parameter.name] = node
        if parameter.required:
            required.append(parameter.name)

    if operation.body is not None:
        body = operation.body
        if not body.description:
            body = _with_description(body, "Request body")
        properties[operation.body_argument] = body
        if operation.body_required:
            required.append(operation.body_argument)

    return ToolDeclaration(
        name=operation.tool_name,
        description=build_description(
            operation.path, operation.summary, operation.description
        ),
        parameters=SchemaNode(
            kind=NodeKind.OBJECT,
            type="object",
            properties=properties,
            required=tuple(required),
        ),
    )


def _with_description(node: SchemaNode, description: str) -> SchemaNode:
    return replace(node, description=description)
