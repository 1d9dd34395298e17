"""Normalized schema tree produced by the resolver.

Nodes are immutable values: resolving the same type twice yields equal
trees. A :class:`Reference` never inlines its target; emitters look the
name up in the type catalog when they need to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final, Literal, Union

COMPONENTS_PREFIX: Final[str] = "#/components/schemas/"

PrimitiveKind = Literal["string", "number", "boolean"]


@dataclass(frozen=True, slots=True)
class Primitive:
    kind: PrimitiveKind
    enum: tuple[Any, ...] | None = None
    description: str = ""


@dataclass(frozen=True, slots=True)
class Array:
    items: SchemaNode


@dataclass(frozen=True, slots=True)
class Reference:
    name: str


@dataclass(frozen=True, slots=True)
class AnyOf:
    members: tuple[SchemaNode, ...]


@dataclass(frozen=True, slots=True)
class AllOf:
    members: tuple[SchemaNode, ...]


@dataclass(frozen=True, slots=True)
class Property:
    name: str
    schema: SchemaNode
    required: bool = True
    description: str = ""


@dataclass(frozen=True, slots=True)
class Object:
    """An object schema; with no properties it is an open placeholder."""

    properties: tuple[Property, ...] = ()
    description: str = ""


@dataclass(frozen=True, slots=True)
class Unknown:
    """Any value. Rendered as an empty (unconstrained) schema."""


SchemaNode = Union[Primitive, Array, Reference, AnyOf, AllOf, Object, Unknown]


def ref_path(name: str) -> str:
    return f"{COMPONENTS_PREFIX}{name}"


def to_openapi(node: SchemaNode) -> dict[str, Any]:
    """Render a schema node as an OpenAPI 3.0 schema object."""
    if isinstance(node, Primitive):
        result: dict[str, Any] = {"type": node.kind}
        if node.enum is not None:
            result["enum"] = list(node.enum)
        if node.description:
            result["description"] = node.description
        return result
    if isinstance(node, Array):
        return {"type": "array", "items": to_openapi(node.items)}
    if isinstance(node, Reference):
        return {"$ref": ref_path(node.name)}
    if isinstance(node, AnyOf):
        return {"anyOf": [to_openapi(m) for m in node.members]}
    if isinstance(node, AllOf):
        return {"allOf": [to_openapi(m) for m in node.members]}
    if isinstance(node, Object):
        result = {"type": "object"}
        if node.description:
            result["description"] = node.description
        if node.properties:
            result["properties"] = {
                prop.name: _property_schema(prop) for prop in node.properties
            }
            required = [prop.name for prop in node.properties if prop.required]
            if required:
                result["required"] = required
        return result
    return {}


def _property_schema(prop: Property) -> dict[str, Any]:
    schema = to_openapi(prop.schema)
    if prop.description and "$ref" not in schema:
        schema["description"] = prop.description
    return schema
