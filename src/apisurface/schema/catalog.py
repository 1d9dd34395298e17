"""Type catalog: the named declarations of one generation run."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from apisurface.source.model import (
    AliasDecl,
    ArrayType,
    ClassTypeDecl,
    InterfaceDecl,
    IntersectionType,
    ObjectType,
    PropertyDecl,
    ReferenceType,
    SourceUnit,
    TypeDeclaration,
    TypeExpr,
    UnionType,
)

logger = logging.getLogger(__name__)


def type_references(expr: TypeExpr | None) -> set[str]:
    """Collect every type name ``expr`` mentions, type arguments included."""
    names: set[str] = set()
    stack = [expr] if expr is not None else []
    while stack:
        node = stack.pop()
        if isinstance(node, ReferenceType):
            names.add(node.name)
            stack.extend(node.arguments)
        elif isinstance(node, ArrayType):
            stack.append(node.element)
        elif isinstance(node, (UnionType, IntersectionType)):
            stack.extend(node.members)
        elif isinstance(node, ObjectType):
            stack.extend(prop.type for prop in node.properties)
    return names


class TypeCatalog:
    """Declarations indexed by name.

    Built once per run and read-only afterwards. When two declarations
    share a name the later registration wins and a warning is logged.
    """

    def __init__(self, declarations: Iterable[TypeDeclaration] = ()) -> None:
        self._declarations: dict[str, TypeDeclaration] = {}
        for decl in declarations:
            if decl.name in self._declarations:
                logger.warning("Duplicate type declaration %r: the later one wins", decl.name)
                del self._declarations[decl.name]
            self._declarations[decl.name] = decl

    @classmethod
    def from_units(cls, units: Iterable[SourceUnit]) -> TypeCatalog:
        """Catalog the exported declarations of ``units``, in order."""
        return cls(
            decl for unit in units for decl in unit.declarations if decl.exported
        )

    def __contains__(self, name: object) -> bool:
        return name in self._declarations

    def __iter__(self) -> Iterator[TypeDeclaration]:
        return iter(self._declarations.values())

    def __len__(self) -> int:
        return len(self._declarations)

    def get(self, name: str) -> TypeDeclaration | None:
        return self._declarations.get(name)

    def supertypes(self, name: str) -> list[TypeDeclaration]:
        """Direct supertypes of ``name`` that the catalog knows."""
        decl = self.get(name)
        if not isinstance(decl, (InterfaceDecl, ClassTypeDecl)):
            return []
        result = []
        for parent in decl.extends:
            found = self.get(parent)
            if found is None:
                logger.warning("Supertype %r of %r is not a known declaration", parent, name)
                continue
            result.append(found)
        return result

    def properties_with_inherited(self, name: str) -> list[PropertyDecl]:
        """Properties of ``name`` including those of its supertypes.

        Supertype properties come first; a property redeclared lower in
        the chain replaces the inherited one in place.
        """
        merged: dict[str, PropertyDecl] = {}
        self._collect_properties(name, merged, set())
        return list(merged.values())

    def _collect_properties(
        self, name: str, merged: dict[str, PropertyDecl], seen: set[str]
    ) -> None:
        if name in seen:
            return
        seen.add(name)
        decl = self.get(name)
        if not isinstance(decl, (InterfaceDecl, ClassTypeDecl)):
            return
        for parent in self.supertypes(name):
            self._collect_properties(parent.name, merged, seen)
        for prop in decl.properties:
            merged[prop.name] = prop

    def referenced_closure(self, names: Iterable[str]) -> list[str]:
        """Known declarations reachable from ``names``, in catalog order."""
        reached: set[str] = set()
        pending = [name for name in names if name in self]
        while pending:
            name = pending.pop()
            if name in reached:
                continue
            reached.add(name)
            for dep in self._dependencies(self._declarations[name]):
                if dep in self and dep not in reached:
                    pending.append(dep)
        return [name for name in self._declarations if name in reached]

    @staticmethod
    def _dependencies(decl: TypeDeclaration) -> set[str]:
        if isinstance(decl, AliasDecl):
            return type_references(decl.type) - set(decl.type_parameters)
        if isinstance(decl, (InterfaceDecl, ClassTypeDecl)):
            deps = set(decl.extends)
            for prop in decl.properties:
                deps |= type_references(prop.type)
            return deps - set(decl.type_parameters)
        return set()
