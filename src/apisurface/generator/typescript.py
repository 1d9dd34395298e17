"""TypeScript source rendering: type text, declarations and layout."""

from __future__ import annotations

import json

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
    OtherType,
    ReferenceType,
    TypeDeclaration,
    TypeExpr,
    UnionType,
)


def quote(text: str) -> str:
    """Single-quoted TypeScript string literal."""
    body = json.dumps(text, ensure_ascii=False)[1:-1]
    return "'" + body.replace('\\"', '"').replace("'", "\\'") + "'"


def type_text(expr: TypeExpr | None) -> str:
    """Render ``expr`` as TypeScript type text."""
    if expr is None:
        return "any"
    if isinstance(expr, KeywordType):
        return expr.name
    if isinstance(expr, LiteralType):
        if isinstance(expr.value, bool):
            return "true" if expr.value else "false"
        if isinstance(expr.value, str):
            return quote(expr.value)
        return repr(expr.value)
    if isinstance(expr, ArrayType):
        element = type_text(expr.element)
        if isinstance(expr.element, (UnionType, IntersectionType)):
            element = f"({element})"
        return f"{element}[]"
    if isinstance(expr, UnionType):
        return " | ".join(type_text(m) for m in expr.members)
    if isinstance(expr, IntersectionType):
        return " & ".join(
            f"({type_text(m)})" if isinstance(m, UnionType) else type_text(m)
            for m in expr.members
        )
    if isinstance(expr, ReferenceType):
        if not expr.arguments:
            return expr.name
        return f"{expr.name}<{', '.join(type_text(a) for a in expr.arguments)}>"
    if isinstance(expr, ObjectType):
        if not expr.properties:
            return "{}"
        members = "; ".join(
            f"{p.name}{'?' if p.optional else ''}: {type_text(p.type)}" for p in expr.properties
        )
        return f"{{ {members} }}"
    if isinstance(expr, OtherType):
        return expr.text
    return "any"


def type_parameter_list(names: tuple[str, ...] | list[str]) -> str:
    return f"<{', '.join(names)}>" if names else ""


class Formatter:
    """Indentation and statement terminators of the emitted code."""

    def __init__(self, indent_size: int = 2, semicolons: str = "ignore") -> None:
        self.unit = " " * indent_size
        self.semicolons = semicolons

    def indent(self, level: int, line: str) -> str:
        return f"{self.unit * level}{line}" if line else ""

    def statement(self, text: str) -> str:
        """Terminate a statement according to the semicolon setting."""
        text = text.rstrip()
        if self.semicolons == "remove":
            return text.rstrip(";")
        if text.endswith(";"):
            return text
        return f"{text};"

    def doc_block(self, lines: list[str], level: int) -> list[str]:
        """A JSDoc block, or nothing when every line is empty."""
        lines = [line.rstrip() for line in lines]
        while lines and not lines[-1]:
            lines.pop()
        if not lines:
            return []
        result = [self.indent(level, "/**")]
        result.extend(self.indent(level, f" * {line}" if line else " *") for line in lines)
        result.append(self.indent(level, " */"))
        return result

    def declaration(self, decl: TypeDeclaration, level: int = 0) -> list[str]:
        """Render a named type declaration."""
        lines = self.doc_block(decl.docs.splitlines(), level)
        if isinstance(decl, EnumDecl):
            lines.append(self.indent(level, f"export enum {decl.name} {{"))
            for member in decl.members:
                text = member.name
                if member.value is not None:
                    text += f" = {type_text(LiteralType(value=member.value))}"
                lines.append(self.indent(level + 1, f"{text},"))
            lines.append(self.indent(level, "}"))
        elif isinstance(decl, (InterfaceDecl, ClassTypeDecl)):
            header = f"export interface {decl.name}{type_parameter_list(decl.type_parameters)}"
            if decl.extends:
                header += f" extends {', '.join(decl.extends)}"
            lines.append(self.indent(level, f"{header} {{"))
            for prop in decl.properties:
                lines.extend(self.doc_block(prop.docs.splitlines(), level + 1))
                optional = "?" if prop.optional else ""
                lines.append(self.indent(
                    level + 1, self.statement(f"{prop.name}{optional}: {type_text(prop.type)}")
                ))
            lines.append(self.indent(level, "}"))
        elif isinstance(decl, AliasDecl):
            lines.append(self.indent(level, self.statement(
                f"export type {decl.name}{type_parameter_list(decl.type_parameters)}"
                f" = {type_text(decl.type)}"
            )))
        return lines
