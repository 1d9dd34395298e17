"""Source model shared by every reader.

Readers (the JSON/YAML manifest reader and the Python reader) turn
annotated source files into these models. Extractors and emitters only
ever see this model, never the files it was read from.

Anywhere a type is expected, a manifest may give TypeScript-style type
text instead of the structured form, e.g. ``"User[]"`` or
``"Page<User> | null"``.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

KeywordName = Literal[
    "string",
    "number",
    "boolean",
    "bigint",
    "any",
    "unknown",
    "void",
    "undefined",
    "null",
    "never",
    "object",
]


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)


# -- type expressions ----------------------------------------------------------


class KeywordType(_Node):
    """A primitive or special keyword type (``string``, ``void``...)."""

    kind: Literal["keyword"] = "keyword"
    name: KeywordName


class LiteralType(_Node):
    """A literal type such as ``'admin'``, ``42`` or ``true``."""

    kind: Literal["literal"] = "literal"
    value: bool | int | float | str


class ArrayType(_Node):
    kind: Literal["array"] = "array"
    element: TypeField


class UnionType(_Node):
    kind: Literal["union"] = "union"
    members: tuple[TypeField, ...]


class IntersectionType(_Node):
    kind: Literal["intersection"] = "intersection"
    members: tuple[TypeField, ...]


class ReferenceType(_Node):
    """A named type, optionally with type arguments (``Page<User>``)."""

    kind: Literal["reference"] = "reference"
    name: str
    arguments: tuple[TypeField, ...] = ()


class ObjectType(_Node):
    """A structural object type (``{ id: number }``)."""

    kind: Literal["object"] = "object"
    properties: tuple[PropertyDecl, ...] = ()


class OtherType(_Node):
    """Any shape the model has no variant for (functions, tuples...)."""

    kind: Literal["other"] = "other"
    text: str = "any"


def _coerce_type(value: Any) -> Any:
    if isinstance(value, str):
        from apisurface.source.typetext import parse_type_text

        return parse_type_text(value)
    return value


TypeExpr = Union[
    KeywordType,
    LiteralType,
    ArrayType,
    UnionType,
    IntersectionType,
    ReferenceType,
    ObjectType,
    OtherType,
]
TypeField = Annotated[TypeExpr, BeforeValidator(_coerce_type)]

ANY = KeywordType(name="any")


# -- annotations and members ---------------------------------------------------


class Expression(_Node):
    """A non-literal annotation argument, kept as source text."""

    text: str


def _coerce_arguments(value: Any) -> Any:
    if not isinstance(value, (list, tuple)):
        return value
    return tuple(_coerce_argument(item) for item in value)


def _coerce_argument(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {"$expression"}:
            return Expression(text=str(value["$expression"]))
        return {key: _coerce_argument(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_coerce_argument(item) for item in value]
    return value


class Annotation(_Node):
    """A decorator attached to a class, method or parameter.

    Arguments are plain literal values (``str``, ``list``, ``dict``,
    numbers) or :class:`Expression` for anything else.
    """

    name: str
    arguments: Annotated[tuple[Any, ...], BeforeValidator(_coerce_arguments)] = ()


class DocComment(_Node):
    description: str = ""
    params: dict[str, str] = Field(default_factory=dict)
    returns: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.description or self.params or self.returns)


class PropertyDecl(_Node):
    name: str
    type: TypeField = ANY
    optional: bool = False
    docs: str = ""


class ParameterDecl(_Node):
    name: str
    type: TypeField = ANY
    optional: bool = False
    annotations: tuple[Annotation, ...] = ()


class MethodDecl(_Node):
    name: str
    annotations: tuple[Annotation, ...] = ()
    parameters: tuple[ParameterDecl, ...] = ()
    return_type: TypeField | None = None
    docs: DocComment = DocComment()
    type_parameters: tuple[str, ...] = ()

    def find_annotation(self, names: frozenset[str]) -> Annotation | None:
        return next((a for a in self.annotations if a.name in names), None)


class ClassDecl(_Node):
    """A class-like declaration that may carry the grouping annotation."""

    name: str
    annotations: tuple[Annotation, ...] = ()
    methods: tuple[MethodDecl, ...] = ()
    docs: DocComment = DocComment()

    def annotation(self, name: str) -> Annotation | None:
        return next((a for a in self.annotations if a.name == name), None)


# -- type declarations ---------------------------------------------------------


class EnumMember(_Node):
    name: str
    value: bool | int | float | str | None = None


class EnumDecl(_Node):
    kind: Literal["enum"] = "enum"
    name: str
    docs: str = ""
    exported: bool = True
    members: tuple[EnumMember, ...] = ()


class InterfaceDecl(_Node):
    kind: Literal["interface"] = "interface"
    name: str
    docs: str = ""
    exported: bool = True
    type_parameters: tuple[str, ...] = ()
    extends: tuple[str, ...] = ()
    properties: tuple[PropertyDecl, ...] = ()


class ClassTypeDecl(_Node):
    kind: Literal["class"] = "class"
    name: str
    docs: str = ""
    exported: bool = True
    type_parameters: tuple[str, ...] = ()
    extends: tuple[str, ...] = ()
    properties: tuple[PropertyDecl, ...] = ()


class AliasDecl(_Node):
    kind: Literal["alias"] = "alias"
    name: str
    docs: str = ""
    exported: bool = True
    type_parameters: tuple[str, ...] = ()
    type: TypeField = ANY


TypeDeclaration = Annotated[
    Union[EnumDecl, InterfaceDecl, ClassTypeDecl, AliasDecl],
    Field(discriminator="kind"),
]


class SourceUnit(_Node):
    """Everything a reader found in one source file."""

    path: str
    classes: tuple[ClassDecl, ...] = ()
    declarations: tuple[TypeDeclaration, ...] = ()

    @property
    def stem(self) -> str:
        """Base name up to the first dot (``users.controller.ts`` -> ``users``)."""
        return PurePath(self.path).name.split(".", 1)[0]


for _model in (
    ArrayType,
    UnionType,
    IntersectionType,
    ReferenceType,
    ObjectType,
    PropertyDecl,
    ParameterDecl,
    MethodDecl,
    ClassDecl,
    AliasDecl,
    SourceUnit,
):
    _model.model_rebuild()
