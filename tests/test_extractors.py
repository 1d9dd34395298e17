import logging
from pathlib import Path

import pytest

from apisurface.errors import ExtractionError
from apisurface.parser.base import PartialBinding, Verb, WholeBinding
from apisurface.parser.controllers import extract_controllers
from apisurface.parser.requests import classify_parameters, extract_request, unwrap_return_type
from apisurface.source.manifest import read_manifest
from apisurface.source.model import (
    Annotation,
    ClassDecl,
    Expression,
    KeywordType,
    MethodDecl,
    ParameterDecl,
    ReferenceType,
    SourceUnit,
)
from apisurface.source.typetext import parse_type_text

FIXTURES = Path(__file__).parent / "fixtures"


def _param(name, binding=None, *arguments, type="string"):
    annotations = [Annotation(name=binding, arguments=arguments)] if binding else []
    return ParameterDecl(name=name, type=type, annotations=annotations)


def _method(*parameters, verb="Get", path=None, name="handler"):
    arguments = [path] if path is not None else []
    return MethodDecl(
        name=name,
        annotations=[Annotation(name=verb, arguments=arguments)],
        parameters=parameters,
    )


def _unit(*methods, argument="items"):
    cls = ClassDecl(
        name="ItemsController",
        annotations=[Annotation(name="Controller", arguments=[argument])],
        methods=methods,
    )
    return SourceUnit(path="src/items.controller.ts", classes=[cls])


class TestClassifyParameters:
    def test_partial_query_bindings_keep_order(self):
        bindings = classify_parameters(_method(
            _param("n", "Query", "name"),
            _param("i", "Query", "id"),
        ))
        assert [(b.property, b.parameter.name) for b in bindings["query"]] == [("name", "n"), ("id", "i")]

    def test_whole_body(self):
        bindings = classify_parameters(_method(_param("dto", "Body", type="CreateDto"), verb="Post"))
        assert isinstance(bindings["data"], WholeBinding)
        assert bindings["data"].parameter.name == "dto"

    def test_non_string_argument_is_whole(self):
        bindings = classify_parameters(_method(
            _param("dto", "Body", Expression(text="new ValidationPipe()")), verb="Post",
        ))
        assert isinstance(bindings["data"], WholeBinding)

    def test_whole_discards_earlier_partials(self, caplog):
        with caplog.at_level(logging.WARNING):
            bindings = classify_parameters(_method(
                _param("page", "Query", "page"),
                _param("opts", "Query"),
                _param("size", "Query", "size"),
            ))
        assert bindings["query"] == WholeBinding(parameter=_param("opts", "Query"))
        assert "discards partial bindings 'page'" in caplog.text
        assert "'size' ignored" in caplog.text

    def test_path_binding_needs_field_name(self):
        with pytest.raises(ExtractionError, match="needs a field name"):
            classify_parameters(_method(_param("id", "Param")))

    def test_headers_and_plain_parameters_are_ignored(self):
        bindings = classify_parameters(_method(
            _param("auth", "Headers", "authorization"),
            _param("req"),
        ))
        assert bindings == {}


class TestExtractRequest:
    def test_not_a_handler(self):
        method = MethodDecl(name="helper")
        assert extract_request(method, "/items") is None

    def test_first_verb_wins(self):
        method = MethodDecl(name="h", annotations=[
            Annotation(name="Post", arguments=["a"]),
            Annotation(name="Get", arguments=["b"]),
        ])
        request = extract_request(method, "/items")
        assert request.verb == Verb.POST
        assert request.url == "/items/a"

    def test_missing_return_type_is_any(self):
        request = extract_request(_method(), "/items")
        assert request.return_type == KeywordType(name="any")
        assert request.url == "/items"

    def test_unknown_method_path_argument(self):
        with pytest.raises(ExtractionError, match="unknown argument type"):
            extract_request(_method(path=Expression(text="ROUTE")), "/items")

    def test_unwrap_return_type(self):
        assert unwrap_return_type(parse_type_text("Promise<User>")) == ReferenceType(name="User")
        assert unwrap_return_type(parse_type_text("Awaitable<User>")) == ReferenceType(name="User")
        assert unwrap_return_type(parse_type_text("Page<User>")).name == "Page"


class TestExtractControllers:
    def test_manifest_controller(self):
        controllers = list(extract_controllers(read_manifest(FIXTURES / "users.controller.yaml")))
        assert len(controllers) == 1
        controller = controllers[0]
        assert controller.name == "users"
        assert controller.base_url == "/users"
        assert controller.docs.description == "User management"
        assert [r.name for r in controller.requests] == ["findOne", "search", "list", "create", "remove"]

    def test_path_parameter_request(self):
        controller = next(extract_controllers(read_manifest(FIXTURES / "users.controller.yaml")))
        find_one = controller.requests[0]
        assert find_one.verb == Verb.GET
        assert find_one.url == "/users/:id"
        assert find_one.params == (
            PartialBinding(property="id", parameter=find_one.params[0].parameter),
        )
        assert find_one.params[0].parameter.type == KeywordType(name="number")
        assert find_one.return_type == ReferenceType(name="User")

    def test_body_request_ignores_headers(self):
        controller = next(extract_controllers(read_manifest(FIXTURES / "users.controller.yaml")))
        create = controller.requests[3]
        assert create.verb == Verb.POST
        assert isinstance(create.data, WholeBinding)
        assert [p.name for p in create.parameters()] == ["dto"]

    def test_controller_argument_shapes(self):
        assert next(extract_controllers([_unit(argument=["api", "items"])])).base_url == "/api/items"
        assert next(extract_controllers([_unit(argument={"path": "stock"})])).base_url == "/stock"

    def test_controller_without_argument(self):
        cls = ClassDecl(name="Root", annotations=[Annotation(name="Controller")])
        controller = next(extract_controllers([SourceUnit(path="root.ts", classes=[cls])]))
        assert controller.base_url == "/"

    def test_unknown_controller_argument(self):
        with pytest.raises(ExtractionError, match="unknown argument type"):
            list(extract_controllers([_unit(argument=42)]))

    def test_units_without_controllers(self):
        assert list(extract_controllers([SourceUnit(path="types.ts")])) == []
