"""Schema resolver: converts type expressions into schema nodes.

Resolution never raises for unsupported shapes. They degrade to
:class:`Unknown` (or an open :class:`Object` for generic references) and
a warning is logged, so one odd property cannot block a whole run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Final

from apisurface.schema.catalog import TypeCatalog
from apisurface.schema.nodes import (
    AllOf,
    AnyOf,
    Array,
    Object,
    Primitive,
    PrimitiveKind,
    Property,
    Reference,
    SchemaNode,
    Unknown,
)
from apisurface.source.model import (
    AliasDecl,
    ArrayType,
    ClassTypeDecl,
    EnumDecl,
    InterfaceDecl,
    IntersectionType,
    KeywordType,
    LiteralType,
    ObjectType,
    PropertyDecl,
    ReferenceType,
    TypeDeclaration,
    TypeExpr,
    UnionType,
)

logger = logging.getLogger(__name__)

# Single-argument wrappers that stand for an asynchronous result.
ASYNC_WRAPPERS: Final[frozenset[str]] = frozenset({"Promise", "Awaitable"})

NO_SCHEMA_KEYWORDS: Final[frozenset[str]] = frozenset({"void", "undefined", "null", "never"})

PRIMITIVE_KEYWORDS: Final[dict[str, PrimitiveKind]] = {
    "string": "string",
    "number": "number",
    "bigint": "number",
    "boolean": "boolean",
}

# Opaque library types serialized as strings.
STRING_TYPES: Final[frozenset[str]] = frozenset({"Date"})


def literal_kind(value: Any) -> PrimitiveKind:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return "string"


class SchemaResolver:
    """Resolves type expressions and named declarations.

    With a catalog attached, references to names it does not know become
    :class:`Unknown` instead of dangling references.
    """

    def __init__(self, catalog: TypeCatalog | None = None) -> None:
        self.catalog = catalog

    def resolve(
        self, expr: TypeExpr | None, type_parameters: Iterable[str] = ()
    ) -> SchemaNode | None:
        """Resolve ``expr``; ``None`` means the field carries no schema.

        ``type_parameters`` names the generic placeholders in scope; they
        resolve to :class:`Unknown`.
        """
        return self._resolve(expr, frozenset(type_parameters))

    def _resolve(self, expr: TypeExpr | None, params: frozenset[str]) -> SchemaNode | None:
        if expr is None:
            return None
        if isinstance(expr, KeywordType):
            if expr.name in NO_SCHEMA_KEYWORDS:
                return None
            if expr.name in PRIMITIVE_KEYWORDS:
                return Primitive(PRIMITIVE_KEYWORDS[expr.name])
            if expr.name == "object":
                return Object()
            return Unknown()
        if isinstance(expr, LiteralType):
            return Primitive(literal_kind(expr.value))
        if isinstance(expr, ArrayType):
            return Array(self._resolve(expr.element, params) or Unknown())
        if isinstance(expr, UnionType):
            members = self._members(expr.members, params)
            if len(members) > 1:
                return AnyOf(members)
            return members[0] if members else None
        if isinstance(expr, IntersectionType):
            members = self._members(expr.members, params)
            if len(members) > 1:
                return AllOf(members)
            return members[0] if members else None
        if isinstance(expr, ReferenceType):
            return self._reference(expr, params)
        if isinstance(expr, ObjectType):
            # structural types are not expanded
            return Object()
        logger.warning("Unsupported type %r, emitting an open schema", expr.text)
        return Unknown()

    def _members(self, members: Iterable[TypeExpr], params: frozenset[str]) -> tuple[SchemaNode, ...]:
        resolved = (self._resolve(member, params) for member in members)
        return tuple(node for node in resolved if node is not None)

    def _reference(self, expr: ReferenceType, params: frozenset[str]) -> SchemaNode | None:
        name = expr.name
        if name in params:
            return Unknown()
        if expr.arguments:
            if name in ASYNC_WRAPPERS and len(expr.arguments) == 1:
                return self._resolve(expr.arguments[0], params)
            if name == "Array" and len(expr.arguments) == 1:
                return Array(self._resolve(expr.arguments[0], params) or Unknown())
            # TODO: instantiate generic declarations with their type arguments
            logger.warning("Generic type %s<...> is not instantiated, emitting an open object", name)
            return Object()
        if name in STRING_TYPES:
            return Primitive("string")
        if self.catalog is not None and name not in self.catalog:
            logger.warning("Reference to unknown type %r, emitting an open schema", name)
            return Unknown()
        return Reference(name)

    # -- named declarations ---------------------------------------------------

    def resolve_declaration(self, decl: TypeDeclaration) -> SchemaNode | None:
        """Build the component schema of a named declaration."""
        if isinstance(decl, EnumDecl):
            return self._enum(decl)
        if isinstance(decl, AliasDecl):
            return self.resolve(decl.type, decl.type_parameters)
        if isinstance(decl, (InterfaceDecl, ClassTypeDecl)):
            params = frozenset(decl.type_parameters)
            own = Object(
                properties=self._properties(decl.properties, params),
                description=decl.docs,
            )
            if not decl.extends:
                return own
            parents = tuple(
                self._reference(ReferenceType(name=parent), frozenset()) or Unknown()
                for parent in decl.extends
            )
            return AllOf(parents + (own,))
        logger.warning("Unsupported declaration %r", decl)
        return Unknown()

    def _properties(
        self, properties: Iterable[PropertyDecl], params: frozenset[str]
    ) -> tuple[Property, ...]:
        result = []
        for prop in properties:
            schema = self._resolve(prop.type, params)
            if schema is None:
                continue
            result.append(Property(prop.name, schema, not prop.optional, prop.docs))
        return tuple(result)

    def _enum(self, decl: EnumDecl) -> Primitive:
        values: list[Any] = []
        next_number: int | float = 0
        for member in decl.members:
            value = member.value if member.value is not None else next_number
            if literal_kind(value) == "number":
                next_number = value + 1
            values.append(value)
        if not values:
            return Primitive("string", description=decl.docs)
        kind = literal_kind(values[0])
        if any(literal_kind(value) != kind for value in values):
            logger.warning("Enum %r mixes member kinds, falling back to string", decl.name)
            kind = "string"
            values = [str(value) for value in values]
        return Primitive(kind, enum=tuple(values), description=decl.docs)
