"""Python source reader.

Reads controller and type modules with :mod:`ast`; nothing is imported or
executed. Controllers follow the same decorator convention as the other
readers, with parameter bindings given as default values or
``Annotated`` metadata::

    @Controller("users")
    class UsersController:
        \"\"\"User management.\"\"\"

        @Get(":id")
        async def find_one(self, id: int = Param("id")) -> User:
            \"\"\"Find a user.

            :param id: user id
            :returns: the user
            \"\"\"

        @Post()
        def create(self, dto: Annotated[CreateUserDto, Body()]) -> User: ...

Type declarations are enums, classes with annotated fields (pydantic
models, dataclasses, ``TypedDict``, ``Protocol``) and type aliases.
"""

from __future__ import annotations

import ast
import re
from pathlib import Path
from typing import Any, Final

from apisurface.errors import SourceError
from apisurface.source.model import (
    ANY,
    AliasDecl,
    Annotation,
    ArrayType,
    ClassDecl,
    ClassTypeDecl,
    DocComment,
    EnumDecl,
    EnumMember,
    Expression,
    InterfaceDecl,
    KeywordType,
    LiteralType,
    MethodDecl,
    OtherType,
    ParameterDecl,
    PropertyDecl,
    ReferenceType,
    SourceUnit,
    TypeDeclaration,
    TypeExpr,
    UnionType,
)

NUMBER_NAMES: Final = frozenset({"int", "float", "Decimal", "complex"})
STRING_NAMES: Final = frozenset({
    "str", "bytes", "datetime", "date", "time", "timedelta", "UUID",
    "EmailStr", "AnyUrl", "HttpUrl",
})
SEQUENCE_NAMES: Final = frozenset({
    "list", "List", "set", "Set", "frozenset", "FrozenSet", "Sequence",
    "MutableSequence", "Iterable", "Collection",
})
MAPPING_NAMES: Final = frozenset({"dict", "Dict", "Mapping", "MutableMapping"})
WRAPPER_NAMES: Final = frozenset({"Required", "NotRequired", "ReadOnly", "Final"})
ENUM_BASES: Final = frozenset({"Enum", "StrEnum", "IntEnum", "Flag", "IntFlag"})
INTERFACE_BASES: Final = frozenset({"TypedDict", "Protocol"})
FRAMEWORK_BASES: Final = frozenset({
    "object", "BaseModel", "RootModel", "Generic", "Protocol", "TypedDict", "NamedTuple",
})
ALIAS_FORMS: Final = frozenset({"Union", "Optional", "Literal", "Annotated"})
CONTROLLER_ANNOTATION: Final = "Controller"

_DOC_FIELD = re.compile(r"^:(param|parameter|arg|argument|returns?)\b([^:]*):\s*(.*)$")


def terminal_name(node: ast.expr) -> str | None:
    """``Get`` for ``Get``, ``nest.Get`` and ``Get(...)``."""
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Name):
        return node.id
    return None


def literal_argument(node: ast.expr) -> Any:
    """Convert an annotation argument into a literal value or Expression."""
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, (ast.List, ast.Tuple)):
        return [literal_argument(item) for item in node.elts]
    if isinstance(node, ast.Dict) and all(
        isinstance(key, ast.Constant) and isinstance(key.value, str) for key in node.keys
    ):
        return {key.value: literal_argument(value) for key, value in zip(node.keys, node.values)}
    return Expression(text=ast.unparse(node))


def annotation_from(node: ast.expr) -> Annotation | None:
    """Turn a decorator (or marker call) into an Annotation.

    Keyword arguments without positional ones become a single object
    argument: ``Controller(path="users")`` reads as ``Controller({path: "users"})``.
    """
    name = terminal_name(node)
    if name is None:
        return None
    if not isinstance(node, ast.Call):
        return Annotation(name=name)
    arguments = [literal_argument(arg) for arg in node.args]
    keywords = {kw.arg: literal_argument(kw.value) for kw in node.keywords if kw.arg and kw.arg != "default"}
    if keywords and not arguments:
        arguments = [keywords]
    return Annotation(name=name, arguments=arguments)


def parse_docstring(text: str | None) -> DocComment:
    """Split a reST-style docstring into description, params and returns."""
    if not text:
        return DocComment()
    description: list[str] = []
    params: dict[str, str] = {}
    returns = ""
    current: str | None = None
    for line in text.splitlines():
        stripped = line.strip()
        match = _DOC_FIELD.match(stripped)
        if match:
            kind, name, rest = match.groups()
            if kind.startswith("return"):
                current = ""
                returns = rest.strip()
            else:
                words = name.split()
                current = words[-1] if words else ""
                params[current] = rest.strip()
        elif current is not None:
            if not stripped:
                continue
            if current:
                params[current] = f"{params[current]} {stripped}".strip()
            else:
                returns = f"{returns} {stripped}".strip()
        else:
            description.append(line)
    return DocComment(description="\n".join(description).strip(), params=params, returns=returns)


def _union(members: list[TypeExpr]) -> TypeExpr:
    flat: list[TypeExpr] = []
    for member in members:
        if isinstance(member, UnionType):
            flat.extend(member.members)
        else:
            flat.append(member)
    if len(flat) == 1:
        return flat[0]
    return UnionType(members=flat)


def _is_nullable(expr: TypeExpr) -> bool:
    null = KeywordType(name="null")
    return expr == null or (isinstance(expr, UnionType) and null in expr.members)


class PythonModuleReader:
    """Reads one Python module into a SourceUnit."""

    def __init__(self, source: str, file_path: str) -> None:
        self.source = source
        self.file_path = file_path
        self._type_vars: set[str] = set()
        self._exports: set[str] | None = None

    def read(self) -> SourceUnit:
        try:
            module = ast.parse(self.source, filename=self.file_path)
        except SyntaxError as e:
            raise SourceError(f"SyntaxError: {e.msg} (line {e.lineno})", self.file_path) from e

        self._scan_module_names(module)
        classes: list[ClassDecl] = []
        declarations: list[TypeDeclaration] = []
        for stmt in module.body:
            if isinstance(stmt, ast.ClassDef):
                cls = self._read_class(stmt)
                classes.append(cls)
                if cls.annotation(CONTROLLER_ANNOTATION) is None:
                    decl = self._read_type_declaration(stmt)
                    if decl is not None:
                        declarations.append(decl)
            else:
                alias = self._read_alias(stmt)
                if alias is not None:
                    declarations.append(alias)
        return SourceUnit(path=self.file_path, classes=classes, declarations=declarations)

    def _scan_module_names(self, module: ast.Module) -> None:
        for stmt in module.body:
            if not (isinstance(stmt, ast.Assign) and len(stmt.targets) == 1):
                continue
            target = stmt.targets[0]
            if not isinstance(target, ast.Name):
                continue
            if isinstance(stmt.value, ast.Call) and terminal_name(stmt.value) in ("TypeVar", "ParamSpec"):
                self._type_vars.add(target.id)
            elif target.id == "__all__" and isinstance(stmt.value, (ast.List, ast.Tuple)):
                self._exports = {
                    item.value for item in stmt.value.elts
                    if isinstance(item, ast.Constant) and isinstance(item.value, str)
                }

    def _is_exported(self, name: str) -> bool:
        if self._exports is not None:
            return name in self._exports
        return not name.startswith("_")

    # -- type hints -----------------------------------------------------------

    def type_from_hint(self, node: ast.expr | None) -> TypeExpr:
        """Map a Python type hint onto a type expression."""
        if node is None:
            return ANY
        if isinstance(node, ast.Constant):
            if node.value is None:
                return KeywordType(name="null")
            if isinstance(node.value, str):
                try:
                    inner = ast.parse(node.value, mode="eval").body
                except SyntaxError:
                    return OtherType(text=node.value)
                return self.type_from_hint(inner)
            return OtherType(text=repr(node.value))
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return _union([self.type_from_hint(node.left), self.type_from_hint(node.right)])
        if isinstance(node, (ast.Name, ast.Attribute)):
            return self._named_type(terminal_name(node), [])
        if isinstance(node, ast.Subscript):
            name = terminal_name(node.value)
            elements = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
            if name == "Literal":
                return _union([self._literal(item) for item in elements])
            if name in ("tuple", "Tuple"):
                if len(elements) == 2 and isinstance(elements[1], ast.Constant) and elements[1].value is Ellipsis:
                    return ArrayType(element=self.type_from_hint(elements[0]))
                return OtherType(text=ast.unparse(node))
            if name == "Annotated":
                return self.type_from_hint(elements[0])
            return self._named_type(name, [self.type_from_hint(item) for item in elements])
        return OtherType(text=ast.unparse(node))

    def _literal(self, node: ast.expr) -> TypeExpr:
        if isinstance(node, ast.Constant):
            if node.value is None:
                return KeywordType(name="null")
            if isinstance(node.value, (bool, int, float, str)):
                return LiteralType(value=node.value)
        return OtherType(text=ast.unparse(node))

    def _named_type(self, name: str | None, arguments: list[TypeExpr]) -> TypeExpr:
        if name is None:
            return ANY
        if name in ("None", "NoneType"):
            return KeywordType(name="null")
        if name in STRING_NAMES:
            return KeywordType(name="string")
        if name in NUMBER_NAMES:
            return KeywordType(name="number")
        if name == "bool":
            return KeywordType(name="boolean")
        if name == "Any":
            return ANY
        if name == "object":
            return KeywordType(name="unknown")
        if name in SEQUENCE_NAMES:
            return ArrayType(element=arguments[0] if arguments else ANY)
        if name in MAPPING_NAMES:
            return ReferenceType(name="Record", arguments=arguments or [KeywordType(name="string"), ANY])
        if name == "Optional" and arguments:
            return _union([arguments[0], KeywordType(name="null")])
        if name == "Union":
            return _union(arguments)
        if name in WRAPPER_NAMES and arguments:
            return arguments[0]
        return ReferenceType(name=name, arguments=arguments)

    def _type_parameters(self, *nodes: ast.AST | None, declared: list[str] | None = None) -> list[str]:
        result = list(declared or [])
        for node in nodes:
            if node is None:
                continue
            for item in ast.walk(node):
                if isinstance(item, ast.Name) and item.id in self._type_vars and item.id not in result:
                    result.append(item.id)
        return result

    # -- controllers ----------------------------------------------------------

    def _read_class(self, node: ast.ClassDef) -> ClassDecl:
        methods = [
            self._read_method(item)
            for item in node.body
            if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef))
        ]
        return ClassDecl(
            name=node.name,
            annotations=[a for a in map(annotation_from, node.decorator_list) if a is not None],
            methods=methods,
            docs=parse_docstring(ast.get_docstring(node)),
        )

    def _read_method(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> MethodDecl:
        annotations = [a for a in map(annotation_from, node.decorator_list) if a is not None]
        is_static = any(a.name == "staticmethod" for a in annotations)
        args = node.args
        positional = args.posonlyargs + args.args
        defaults: list[ast.expr | None] = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
        pairs = list(zip(positional, defaults)) + list(zip(args.kwonlyargs, args.kw_defaults))
        if positional and not is_static:
            pairs = pairs[1:]

        parameters = [self._read_parameter(arg, default) for arg, default in pairs]
        declared = [p.name for p in getattr(node, "type_params", [])]
        hints = [arg.annotation for arg, _ in pairs] + [node.returns]
        return MethodDecl(
            name=node.name,
            annotations=annotations,
            parameters=parameters,
            return_type=self._return_type(node.returns),
            docs=parse_docstring(ast.get_docstring(node)),
            type_parameters=self._type_parameters(*hints, declared=declared),
        )

    def _return_type(self, node: ast.expr | None) -> TypeExpr | None:
        if node is None:
            return None
        result = self.type_from_hint(node)
        # A handler returning None has no result.
        if result == KeywordType(name="null"):
            return KeywordType(name="void")
        return result

    def _read_parameter(self, arg: ast.arg, default: ast.expr | None) -> ParameterDecl:
        annotations: list[Annotation] = []
        optional = False
        hint = arg.annotation
        if isinstance(hint, ast.Subscript) and terminal_name(hint.value) == "Annotated":
            elements = hint.slice.elts if isinstance(hint.slice, ast.Tuple) else [hint.slice]
            annotations.extend(a for a in map(annotation_from, elements[1:]) if a is not None)
        if isinstance(default, ast.Call):
            marker = annotation_from(default)
            if marker is not None:
                annotations.append(marker)
            optional = any(kw.arg in ("default", "default_factory") for kw in default.keywords)
        elif default is not None:
            optional = True
        type_expr = self.type_from_hint(hint)
        return ParameterDecl(
            name=arg.arg,
            type=type_expr,
            optional=optional or _is_nullable(type_expr),
            annotations=annotations,
        )

    # -- type declarations ----------------------------------------------------

    def _read_type_declaration(self, node: ast.ClassDef) -> TypeDeclaration | None:
        base_names = [terminal_name(base) for base in node.bases]
        declared = [p.name for p in getattr(node, "type_params", [])]
        for base in node.bases:
            if isinstance(base, ast.Subscript) and terminal_name(base.value) == "Generic":
                declared.extend(self._type_parameters(base.slice))
        docs = ast.get_docstring(node) or ""
        exported = self._is_exported(node.name)

        if any(name in ENUM_BASES for name in base_names):
            return EnumDecl(
                name=node.name, docs=docs, exported=exported, members=self._enum_members(node)
            )

        properties = self._properties(node)
        extends = [
            name for name in base_names
            if name and name not in FRAMEWORK_BASES and name not in ENUM_BASES
        ]
        if not properties and not extends and not any(n in INTERFACE_BASES for n in base_names):
            if not node.bases:
                return None
        fields = dict(
            name=node.name,
            docs=docs,
            exported=exported,
            type_parameters=self._type_parameters(declared=declared),
            extends=extends,
            properties=properties,
        )
        if any(name in INTERFACE_BASES for name in base_names):
            return InterfaceDecl(**fields)
        return ClassTypeDecl(**fields)

    def _enum_members(self, node: ast.ClassDef) -> list[EnumMember]:
        members = []
        for stmt in node.body:
            if not (isinstance(stmt, ast.Assign) and len(stmt.targets) == 1):
                continue
            target = stmt.targets[0]
            if not isinstance(target, ast.Name) or target.id.startswith("_"):
                continue
            try:
                value = ast.literal_eval(stmt.value)
            except (ValueError, TypeError, SyntaxError):
                value = None  # auto() and friends
            if not isinstance(value, (bool, int, float, str)):
                value = None
            members.append(EnumMember(name=target.id, value=value))
        return members

    def _properties(self, node: ast.ClassDef) -> list[PropertyDecl]:
        total = not any(
            kw.arg == "total" and isinstance(kw.value, ast.Constant) and kw.value.value is False
            for kw in node.keywords
        )
        properties = []
        body = node.body
        for index, stmt in enumerate(body):
            if not (isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name)):
                continue
            name = stmt.target.id
            if name.startswith("_") or terminal_name(stmt.annotation) == "ClassVar":
                continue
            if isinstance(stmt.annotation, ast.Subscript) and terminal_name(stmt.annotation.value) == "ClassVar":
                continue
            type_expr = self.type_from_hint(stmt.annotation)
            optional, docs = self._field_default(stmt.value)
            if isinstance(stmt.annotation, ast.Subscript) and terminal_name(stmt.annotation.value) == "NotRequired":
                optional = True
            following = body[index + 1] if index + 1 < len(body) else None
            if (
                isinstance(following, ast.Expr)
                and isinstance(following.value, ast.Constant)
                and isinstance(following.value.value, str)
            ):
                docs = " ".join(following.value.value.split())
            properties.append(PropertyDecl(
                name=name,
                type=type_expr,
                optional=optional or not total or _is_nullable(type_expr),
                docs=docs,
            ))
        return properties

    @staticmethod
    def _field_default(value: ast.expr | None) -> tuple[bool, str]:
        """(has a default, description) for a field's assigned value."""
        if value is None:
            return False, ""
        if isinstance(value, ast.Call) and terminal_name(value) == "Field":
            description = next(
                (kw.value.value for kw in value.keywords
                 if kw.arg == "description" and isinstance(kw.value, ast.Constant)),
                "",
            )
            has_default = any(kw.arg in ("default", "default_factory") for kw in value.keywords)
            if value.args:
                first = value.args[0]
                has_default = has_default or not (isinstance(first, ast.Constant) and first.value is Ellipsis)
            return has_default, str(description)
        return True, ""

    def _read_alias(self, stmt: ast.stmt) -> AliasDecl | None:
        type_alias = getattr(ast, "TypeAlias", None)
        if type_alias is not None and isinstance(stmt, type_alias):
            name = stmt.name.id
            return AliasDecl(
                name=name,
                exported=self._is_exported(name),
                type_parameters=[p.name for p in stmt.type_params],
                type=self.type_from_hint(stmt.value),
            )
        if (
            isinstance(stmt, ast.AnnAssign)
            and isinstance(stmt.target, ast.Name)
            and terminal_name(stmt.annotation) == "TypeAlias"
            and stmt.value is not None
        ):
            name = stmt.target.id
        elif (
            isinstance(stmt, ast.Assign)
            and len(stmt.targets) == 1
            and isinstance(stmt.targets[0], ast.Name)
            and (
                (isinstance(stmt.value, ast.Subscript) and terminal_name(stmt.value.value) in ALIAS_FORMS)
                or (isinstance(stmt.value, ast.BinOp) and isinstance(stmt.value.op, ast.BitOr))
            )
        ):
            name = stmt.targets[0].id
        else:
            return None
        return AliasDecl(
            name=name,
            exported=self._is_exported(name),
            type_parameters=self._type_parameters(stmt.value),
            type=self.type_from_hint(stmt.value),
        )


def read_python(file_path: Path) -> list[SourceUnit]:
    """Read a Python module into a single source unit."""
    try:
        source = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise SourceError(f"Not UTF-8 text: {e}", str(file_path)) from e
    return [PythonModuleReader(source, str(file_path)).read()]
