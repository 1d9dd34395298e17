import logging
from pathlib import Path

from apisurface.schema.catalog import TypeCatalog, type_references
from apisurface.source.manifest import read_manifest
from apisurface.source.model import AliasDecl, InterfaceDecl, PropertyDecl
from apisurface.source.typetext import parse_type_text

FIXTURES = Path(__file__).parent / "fixtures"


def _catalog():
    return TypeCatalog.from_units(read_manifest(FIXTURES / "user.dto.yaml"))


class TestTypeReferences:
    def test_collects_arguments_and_members(self):
        expr = parse_type_text("Page<User> | { owner: Owner[] } | string")
        assert type_references(expr) == {"Page", "User", "Owner"}


class TestTypeCatalog:
    def test_only_exported_declarations(self):
        catalog = _catalog()
        assert "User" in catalog
        assert "Internal" not in catalog
        assert len(catalog) == 8

    def test_iteration_order(self):
        assert [d.name for d in _catalog()][:3] == ["Role", "Entity", "User"]

    def test_duplicate_later_wins(self, caplog):
        first = InterfaceDecl(name="User", properties=[PropertyDecl(name="a")])
        second = InterfaceDecl(name="User", properties=[PropertyDecl(name="b")])
        other = AliasDecl(name="Id", type="number")
        with caplog.at_level(logging.WARNING):
            catalog = TypeCatalog([first, other, second])
        assert catalog.get("User") is second
        assert [d.name for d in catalog] == ["Id", "User"]
        assert "Duplicate type declaration 'User'" in caplog.text

    def test_supertypes(self):
        catalog = _catalog()
        assert [d.name for d in catalog.supertypes("User")] == ["Entity"]
        assert catalog.supertypes("Role") == []

    def test_unknown_supertype_is_skipped(self, caplog):
        catalog = TypeCatalog([InterfaceDecl(name="A", extends=["Missing"])])
        with caplog.at_level(logging.WARNING):
            assert catalog.supertypes("A") == []
        assert "Supertype 'Missing'" in caplog.text

    def test_properties_with_inherited(self):
        names = [p.name for p in _catalog().properties_with_inherited("ListUsersQuery")]
        assert names == ["page", "size", "name"]

    def test_properties_with_cycle(self):
        catalog = TypeCatalog([
            InterfaceDecl(name="A", extends=["B"], properties=[PropertyDecl(name="a")]),
            InterfaceDecl(name="B", extends=["A"], properties=[PropertyDecl(name="b")]),
        ])
        assert [p.name for p in catalog.properties_with_inherited("A")] == ["b", "a"]

    def test_referenced_closure(self):
        catalog = _catalog()
        assert catalog.referenced_closure(["User"]) == ["Role", "Entity", "User"]
        assert catalog.referenced_closure(["Page", "Unknown"]) == ["Page"]
