import ast
from pathlib import Path

import pytest

from apisurface.errors import SourceError
from apisurface.parser.base import Verb, WholeBinding
from apisurface.parser.controllers import extract_controllers
from apisurface.source.model import (
    AliasDecl,
    Annotation,
    ArrayType,
    ClassTypeDecl,
    EnumDecl,
    InterfaceDecl,
    KeywordType,
    LiteralType,
    ReferenceType,
    UnionType,
)
from apisurface.source.python import PythonModuleReader, parse_docstring, read_python

FIXTURES = Path(__file__).parent / "fixtures" / "python"

STRING = KeywordType(name="string")
NUMBER = KeywordType(name="number")
NULL = KeywordType(name="null")


def _hint(text):
    return PythonModuleReader("", "m.py").type_from_hint(ast.parse(text, mode="eval").body)


def _declarations(source):
    return {d.name: d for d in PythonModuleReader(source, "m.py").read().declarations}


class TestTypeHints:
    @pytest.mark.parametrize("text, expected", [
        ("str", STRING),
        ("int", NUMBER),
        ("Decimal", NUMBER),
        ("bool", KeywordType(name="boolean")),
        ("None", NULL),
        ("Any", KeywordType(name="any")),
        ("datetime.datetime", STRING),
        ("UUID", STRING),
        ("list[int]", ArrayType(element=NUMBER)),
        ("typing.Sequence[str]", ArrayType(element=STRING)),
        ("tuple[int, ...]", ArrayType(element=NUMBER)),
        ("str | None", UnionType(members=(STRING, NULL))),
        ("Optional[User]", UnionType(members=(ReferenceType(name="User"), NULL))),
        ("Union[int, str, None]", UnionType(members=(NUMBER, STRING, NULL))),
        ("Literal['a', 1]", UnionType(members=(LiteralType(value="a"), LiteralType(value=1)))),
        ("Literal['a']", LiteralType(value="a")),
        ("Annotated[int, Param('id')]", NUMBER),
        ("dict[str, int]", ReferenceType(name="Record", arguments=(STRING, NUMBER))),
        ("'User'", ReferenceType(name="User")),
        ("Page[User]", ReferenceType(name="Page", arguments=(ReferenceType(name="User"),))),
    ])
    def test_mapping(self, text, expected):
        assert _hint(text) == expected

    def test_fixed_tuple_is_other(self):
        assert _hint("tuple[int, str]").kind == "other"


class TestDocstrings:
    def test_fields(self):
        docs = parse_docstring("Find a user.\n\nLonger text.\n\n:param id: user id\n    continued\n:returns: the user")
        assert docs.description == "Find a user.\n\nLonger text."
        assert docs.params == {"id": "user id continued"}
        assert docs.returns == "the user"

    def test_typed_param_field(self):
        assert parse_docstring(":param int page: page number").params == {"page": "page number"}

    def test_empty(self):
        assert parse_docstring(None).is_empty


class TestTypeDeclarations:
    def test_fixture_declaration_order(self):
        unit = read_python(FIXTURES / "models.py")[0]
        assert unit.stem == "models"
        assert [d.name for d in unit.declarations] == [
            "Status", "Priority", "Entity", "Order", "CreateOrder", "OrderFilter",
            "Page", "Identifier", "_Hidden",
        ]

    def test_enums(self):
        decls = {d.name: d for d in read_python(FIXTURES / "models.py")[0].declarations}
        assert isinstance(decls["Status"], EnumDecl)
        assert [m.value for m in decls["Status"].members] == ["pending", "shipped"]
        assert [m.value for m in decls["Priority"].members] == [None, None]

    def test_model_fields(self):
        decls = {d.name: d for d in read_python(FIXTURES / "models.py")[0].declarations}
        order = decls["Order"]
        assert isinstance(order, ClassTypeDecl)
        assert order.extends == ("Entity",)
        assert order.docs == "A customer order."
        props = {p.name: p for p in order.properties}
        assert list(props) == ["status", "items", "created_at", "note", "kind"]
        assert props["status"].type == ReferenceType(name="Status")
        assert props["status"].optional is False
        assert props["items"].optional is True
        assert props["items"].docs == "Line items"
        assert props["created_at"].type == STRING
        assert props["note"].optional is True
        assert props["kind"].type == UnionType(
            members=(LiteralType(value="retail"), LiteralType(value="wholesale"))
        )

    def test_typed_dict_is_interface(self):
        decls = {d.name: d for d in read_python(FIXTURES / "models.py")[0].declarations}
        assert isinstance(decls["OrderFilter"], InterfaceDecl)
        assert all(p.optional for p in decls["OrderFilter"].properties)

    def test_generic_model(self):
        decls = {d.name: d for d in read_python(FIXTURES / "models.py")[0].declarations}
        assert decls["Page"].type_parameters == ("T",)
        assert decls["Page"].extends == ()
        assert decls["Page"].properties[0].type == ArrayType(element=ReferenceType(name="T"))

    def test_alias_and_private(self):
        decls = {d.name: d for d in read_python(FIXTURES / "models.py")[0].declarations}
        assert isinstance(decls["Identifier"], AliasDecl)
        assert decls["Identifier"].type == UnionType(members=(NUMBER, STRING))
        assert decls["_Hidden"].exported is False

    def test_dunder_all_controls_exports(self):
        decls = _declarations(
            "__all__ = ['A']\n"
            "class A(BaseModel):\n    x: int\n"
            "class B(BaseModel):\n    y: int\n"
        )
        assert decls["A"].exported is True
        assert decls["B"].exported is False

    def test_type_alias_forms(self):
        decls = _declarations(
            "from typing import TypeAlias\n"
            "UserId: TypeAlias = int\n"
            "MaybeName = str | None\n"
            "PLAIN = 3\n"
        )
        assert decls["UserId"].type == NUMBER
        assert decls["MaybeName"].type == UnionType(members=(STRING, NULL))
        assert "PLAIN" not in decls

    def test_class_vars_and_private_fields_are_skipped(self):
        decls = _declarations(
            "class A(BaseModel):\n"
            "    registry: ClassVar[dict] = {}\n"
            "    _cache: int = 0\n"
            "    name: str\n"
            "    \"\"\"Display name.\"\"\"\n"
        )
        props = decls["A"].properties
        assert [p.name for p in props] == ["name"]
        assert props[0].docs == "Display name."

    def test_syntax_error(self, tmp_path):
        f = tmp_path / "broken.py"
        f.write_text("class (:\n")
        with pytest.raises(SourceError, match="SyntaxError"):
            read_python(f)

    def test_not_utf8(self, tmp_path):
        f = tmp_path / "bad.py"
        f.write_bytes(b"# caf\xe9\n")
        with pytest.raises(SourceError, match="Not UTF-8"):
            read_python(f)


class TestControllers:
    def test_controller_class(self):
        unit = read_python(FIXTURES / "orders.controller.py")[0]
        assert unit.stem == "orders"
        assert unit.declarations == ()
        cls = unit.classes[0]
        assert cls.annotation("Controller").arguments == ({"path": "orders"},)
        assert cls.docs.description == "Order management."

    def test_handler_parameters(self):
        cls = read_python(FIXTURES / "orders.controller.py")[0].classes[0]
        methods = {m.name: m for m in cls.methods}
        find_one = methods["find_one"]
        assert [p.name for p in find_one.parameters] == ["order_id"]
        assert find_one.parameters[0].annotations == (Annotation(name="Param", arguments=["order_id"]),)
        assert find_one.return_type == ReferenceType(name="Order")
        assert find_one.docs.params == {"order_id": "order identifier"}
        assert find_one.docs.returns == "the order"

        note = methods["set_status"].parameters[2]
        assert note.optional is True
        assert note.annotations[0].arguments == ("note",)

        search = methods["search"].parameters[0]
        assert search.annotations == (Annotation(name="Query"),)
        assert search.type == ReferenceType(name="OrderFilter")

    def test_extracts_requests(self):
        controller = next(extract_controllers([read_python(FIXTURES / "orders.controller.py")[0]]))
        requests = {r.name: r for r in controller.requests}
        assert list(requests) == ["find_one", "search", "create", "set_status"]
        assert requests["find_one"].url == "/orders/:order_id"
        assert isinstance(requests["search"].query, WholeBinding)
        assert requests["set_status"].verb == Verb.PATCH
        assert [b.property for b in requests["set_status"].data] == ["status", "note"]
        assert requests["set_status"].return_type == KeywordType(name="void")

    def test_method_type_vars(self):
        source = (
            "T = TypeVar('T')\n"
            "@Controller('x')\n"
            "class X:\n"
            "    @Get()\n"
            "    def one(self, q: T = Query('q')) -> list[T]: ...\n"
        )
        method = PythonModuleReader(source, "x.py").read().classes[0].methods[0]
        assert method.type_parameters == ("T",)

    def test_none_result_is_void(self):
        source = (
            "@Controller('x')\n"
            "class X:\n"
            "    @Delete(':id')\n"
            "    async def remove(self, id: int = Param('id')) -> None: ...\n"
            "    @Get(':id')\n"
            "    def one(self, id: int = Param('id')) -> Optional[str]: ...\n"
        )
        methods = PythonModuleReader(source, "x.py").read().classes[0].methods
        assert methods[0].return_type == KeywordType(name="void")
        assert methods[1].return_type == UnionType(members=(STRING, NULL))
