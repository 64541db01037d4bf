"""Reference resolution for API description schemas.

Schemas are turned into a tree of ``SchemaNode`` objects. Every node reached
through a ``$ref`` is stored in an arena keyed by the reference string, so a
type shared by many operations is resolved once. A stack of the references
currently being resolved detects cycles before they can recurse.
"""

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any
from urllib.parse import unquote

from toolbridge.errors import SchemaCycleError, SchemaResolutionError
from toolbridge.schema.types import NodeKind, SchemaNode

logger = logging.getLogger(__name__)

_SCALAR_TYPES = {"string", "number", "integer", "boolean"}


def _schema_type(schema: Mapping[str, Any]) -> str:
    """Determine the JSON type of a raw schema.

    Handles OpenAPI 3.1 type lists (the first non-null entry wins) and
    infers a type when none is declared.
    """
    declared = schema.get("type")
    if isinstance(declared, list):
        declared = next((t for t in declared if t != "null"), None)
    if isinstance(declared, str) and declared:
        return declared

    if "properties" in schema:
        return "object"
    if "items" in schema:
        return "array"
    if "enum" in schema:
        return _enum_type(schema["enum"])
    return "object"


def _enum_type(values: Any) -> str:
    present = [v for v in values or () if v is not None]
    if not present:
        return "string"
    if all(isinstance(v, bool) for v in present):
        return "boolean"
    if any(isinstance(v, bool) for v in present):
        return "string"
    if all(isinstance(v, int) for v in present):
        return "integer"
    if all(isinstance(v, (int, float)) for v in present):
        return "number"
    return "string"


class SchemaResolver:
    """Resolves raw schemas of one API description into ``SchemaNode`` trees.

    Attributes:
        document: The parsed API description that local references point into
    """

    def __init__(self, document: Mapping[str, Any]) -> None:
        self.document = document
        self._arena: dict[str, SchemaNode] = {}
        self._resolving: list[str] = []
        self._inline: set[int] = set()

    @property
    def resolved_refs(self) -> list[str]:
        """References resolved so far, in resolution order."""
        return list(self._arena)

    def lookup(self, ref: str) -> Any:
        """Follow a local JSON pointer (``#/a/b``) into the document.

        Raises:
            SchemaResolutionError: If the reference is not local or the
                pointer does not lead anywhere
        """
        if not isinstance(ref, str) or not ref.startswith("#"):
            raise SchemaResolutionError(str(ref), "only local references are supported")

        current: Any = self.document
        pointer = ref[1:].lstrip("/")
        if not pointer:
            return current

        for raw_part in pointer.split("/"):
            part = unquote(raw_part).replace("~1", "/").replace("~0", "~")
            if isinstance(current, Mapping) and part in current:
                current = current[part]
            elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                raise SchemaResolutionError(ref)
        return current

    def deref(self, obj: Any) -> Any:
        """Follow a chain of ``$ref`` objects (parameters, request bodies).

        Raises:
            SchemaCycleError: If the chain loops
            SchemaResolutionError: If a link in the chain is dangling
        """
        chain: list[str] = []
        while isinstance(obj, Mapping) and "$ref" in obj:
            ref = obj["$ref"]
            if ref in chain:
                raise SchemaCycleError(chain + [ref])
            chain.append(ref)
            obj = self.lookup(ref)
        return obj

    def resolve(self, schema: Any) -> SchemaNode:
        """Resolve a raw schema into a ``SchemaNode``.

        Args:
            schema: The raw schema mapping (may be a ``$ref``)

        Returns:
            SchemaNode: The resolved node

        Raises:
            SchemaCycleError: If references form a cycle
            SchemaResolutionError: If a reference cannot be resolved
        """
        if not isinstance(schema, Mapping):
            return SchemaNode(kind=NodeKind.OBJECT, type="object")

        if "$ref" in schema:
            node = self._resolve_ref(schema["$ref"])
            # Sibling keywords next to a $ref refine the target
            if schema.get("description"):
                node = replace(node, description=schema["description"])
            return node

        marker = id(schema)
        if marker in self._inline:
            raise SchemaCycleError(self._resolving + ["<inline schema>"])
        self._inline.add(marker)
        try:
            return self._build(schema)
        finally:
            self._inline.discard(marker)

    def _resolve_ref(self, ref: str) -> SchemaNode:
        if ref in self._arena:
            return self._arena[ref]

        if ref in self._resolving:
            start = self._resolving.index(ref)
            raise SchemaCycleError(self._resolving[start:] + [ref])

        self._resolving.append(ref)
        try:
            target = self.lookup(ref)
            node = self.resolve(target)
        finally:
            self._resolving.pop()

        self._arena[ref] = node
        logger.debug(f"Resolved reference {ref} -> {node.kind.value}")
        return node

    def _build(self, schema: Mapping[str, Any]) -> SchemaNode:
        common = {
            "description": schema.get("description"),
            "title": schema.get("title"),
            "format": schema.get("format"),
            "default": schema.get("default"),
            "example": schema.get("example"),
        }

        if schema.get("allOf"):
            return self._merge_all_of(schema)

        for keyword in ("oneOf", "anyOf"):
            if schema.get(keyword):
                variants = tuple(self.resolve(s) for s in schema[keyword])
                return SchemaNode(
                    kind=NodeKind.UNION,
                    variants=variants,
                    union_keyword=keyword,
                    **common,
                )

        schema_type = _schema_type(schema)

        if schema.get("enum"):
            return SchemaNode(
                kind=NodeKind.ENUM,
                type=schema_type if schema_type in _SCALAR_TYPES else "string",
                enum=tuple(schema["enum"]),
                **common,
            )

        if schema_type == "array":
            items = schema.get("items")
            return SchemaNode(
                kind=NodeKind.ARRAY,
                type="array",
                items=self.resolve(items) if items is not None else None,
                **common,
            )

        if schema_type == "object":
            properties = {
                name: self.resolve(prop)
                for name, prop in (schema.get("properties") or {}).items()
            }
            return SchemaNode(
                kind=NodeKind.OBJECT,
                type="object",
                properties=properties,
                required=tuple(schema.get("required") or ()),
                **common,
            )

        return SchemaNode(kind=NodeKind.SCALAR, type=schema_type, **common)

    def _merge_all_of(self, schema: Mapping[str, Any]) -> SchemaNode:
        """Merge an ``allOf`` node into a single object node.

        Properties and required names are unioned across all sub-schemas; a
        later sub-schema wins when two declare the same property. The first
        non-empty description and title win.
        """
        parts = [self.resolve(sub) for sub in schema["allOf"]]

        # Keywords declared next to allOf count as one more sub-schema
        own = {k: v for k, v in schema.items() if k != "allOf"}
        if own.get("properties") or own.get("required"):
            parts.append(self.resolve(own))

        properties: dict[str, SchemaNode] = {}
        required: list[str] = []
        description = schema.get("description")
        title = schema.get("title")

        for part in parts:
            properties.update(part.properties)
            for name in part.required:
                if name not in required:
                    required.append(name)
            if not description and part.description:
                description = part.description
            if not title and part.title:
                title = part.title

        return SchemaNode(
            kind=NodeKind.OBJECT,
            type="object",
            description=description,
            title=title,
            example=schema.get("example"),
            properties=properties,
            required=tuple(required),
        )
