"""Data types for the compiled API description.

This module defines the resolved schema tree, the operation and parameter
specs stored in the registry, and the tool declarations exposed to the model.
All of them are immutable once compilation has finished.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Default argument name of the synthetic request-body parameter
BODY_PARAMETER = "body"


class NodeKind(str, Enum):
    """Tag of a resolved schema node."""

    OBJECT = "object"
    ARRAY = "array"
    SCALAR = "scalar"
    ENUM = "enum"
    UNION = "union"


class ParameterLocation(str, Enum):
    """Where a parameter travels in the HTTP request."""

    PATH = "path"
    QUERY = "query"
    HEADER = "header"


@dataclass(frozen=True)
class SchemaNode:
    """A resolved schema node with all references already followed.

    Attributes:
        kind: Which variant of the tree this node is
        type: JSON type name (string, number, integer, boolean, array, object)
        description: Human-readable description, if any
        title: Schema title, if any
        format: Format hint (e.g. "date", "int64")
        default: Default value declared in the description
        example: Example value declared in the description
        enum: Allowed values for enum nodes
        items: Item schema for array nodes
        properties: Property schemas for object nodes
        required: Required property names for object nodes
        variants: Alternative schemas for union nodes
        union_keyword: "oneOf" or "anyOf", kept as declared
    """

    kind: NodeKind
    type: str | None = None
    description: str | None = None
    title: str | None = None
    format: str | None = None
    default: Any = None
    example: Any = None
    enum: tuple[Any, ...] = ()
    items: "SchemaNode | None" = None
    properties: dict[str, "SchemaNode"] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    variants: tuple["SchemaNode", ...] = ()
    union_keyword: str = "anyOf"

    def to_json_schema(self) -> dict[str, Any]:
        """Render the node as a JSON-schema-shaped dict for the model."""
        schema: dict[str, Any] = {}

        if self.kind is NodeKind.UNION:
            schema[self.union_keyword] = [v.to_json_schema() for v in self.variants]
        elif self.type:
            schema["type"] = self.type

        if self.description:
            schema["description"] = self.description
        if self.title:
            schema["title"] = self.title
        if self.format:
            schema["format"] = self.format
        if self.default is not None:
            schema["default"] = self.default
        if self.example is not None:
            schema["example"] = self.example

        if self.kind is NodeKind.ENUM:
            schema["enum"] = list(self.enum)
        elif self.kind is NodeKind.ARRAY and self.items is not None:
            schema["items"] = self.items.to_json_schema()
        elif self.kind is NodeKind.OBJECT:
            if self.properties:
                schema["properties"] = {
                    name: prop.to_json_schema()
                    for name, prop in self.properties.items()
                }
            if self.required:
                schema["required"] = list(self.required)

        return schema


@dataclass(frozen=True)
class ParameterSpec:
    """A single path, query or header parameter of an operation.

    ``style`` and ``explode`` decide how array and object values are written
    on the wire (see the dispatcher).
    """

    name: str
    location: ParameterLocation
    schema: SchemaNode
    required: bool = False
    description: str | None = None
    style: str = "form"
    explode: bool = True

    @property
    def type(self) -> str | None:
        """Declared JSON type of the parameter."""
        if self.schema.kind is NodeKind.ENUM:
            return "enum"
        return self.schema.type

    @property
    def enum_values(self) -> tuple[Any, ...]:
        """Allowed values if the parameter is an enum, otherwise empty."""
        return self.schema.enum

    def to_json_schema(self) -> dict[str, Any]:
        schema = self.schema.to_json_schema()
        if self.description and "description" not in schema:
            schema["description"] = self.description
        return schema


@dataclass(frozen=True)
class OperationSpec:
    """One HTTP operation reachable through a generated tool name."""

    tool_name: str
    method: str
    path: str
    parameters: tuple[ParameterSpec, ...] = ()
    body: SchemaNode | None = None
    body_required: bool = False
    body_argument: str = BODY_PARAMETER
    summary: str | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()

    def get_parameter(self, name: str) -> ParameterSpec | None:
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        return None

    def path_parameter_names(self) -> list[str]:
        return [
            p.name for p in self.parameters if p.location is ParameterLocation.PATH
        ]


@dataclass(frozen=True)
class ToolDeclaration:
    """A tool exposed to the model.

    Attributes:
        name: Tool name the model uses to call it
        description: Human-readable description shown to the model
        parameters: Object schema describing the accepted arguments
    """

    name: str
    description: str
    parameters: SchemaNode

    def to_ollama_tool(self) -> dict[str, Any]:
        """Render the declaration in the function-calling tool format."""
        parameters = self.parameters.to_json_schema()
        parameters.setdefault("type", "object")
        parameters.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }
