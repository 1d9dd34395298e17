"""Parser for TypeScript-style type text.

Covers the subset of the type grammar that API declarations use::

    User[]            Page<User>          'admin' | 'guest'
    A & B             (A | B)[]           { id: number; name?: string }
"""

from __future__ import annotations

import ast
import logging
import re

from apisurface.source.model import (
    ArrayType,
    IntersectionType,
    KeywordType,
    LiteralType,
    ObjectType,
    OtherType,
    PropertyDecl,
    ReferenceType,
    TypeExpr,
    UnionType,
)

logger = logging.getLogger(__name__)

KEYWORDS = frozenset({
    "string", "number", "boolean", "bigint", "any", "unknown",
    "void", "undefined", "null", "never", "object",
})

_TOKEN = re.compile(
    r"""\s*(?:
        (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
      | (?P<number>-?\d+(?:\.\d+)?)
      | (?P<ident>[A-Za-z_$][\w$.]*)
      | (?P<punct>[|&<>\[\](){},;:?])
    )""",
    re.VERBOSE,
)


def tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if not match or match.end() == pos:
            raise ValueError(f"Unexpected character {text[pos:].strip()[:1]!r} in type {text!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class _TypeParser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    def parse(self) -> TypeExpr:
        if not self.tokens:
            raise ValueError("Empty type text")
        result = self._union()
        if self.pos != len(self.tokens):
            raise ValueError(f"Unexpected {self.tokens[self.pos][1]!r} in type {self.text!r}")
        return result

    # -- token helpers --------------------------------------------------------

    def _peek(self) -> str | None:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos][1]
        return None

    def _accept(self, value: str) -> bool:
        if self._peek() == value:
            self.pos += 1
            return True
        return False

    def _expect(self, value: str) -> None:
        if not self._accept(value):
            found = self._peek()
            raise ValueError(f"Expected {value!r} but found {found!r} in type {self.text!r}")

    def _next(self) -> tuple[str, str]:
        if self.pos >= len(self.tokens):
            raise ValueError(f"Unexpected end of type {self.text!r}")
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    # -- grammar --------------------------------------------------------------

    def _union(self) -> TypeExpr:
        self._accept("|")
        members = [self._intersection()]
        while self._accept("|"):
            members.append(self._intersection())
        if len(members) == 1:
            return members[0]
        return UnionType(members=members)

    def _intersection(self) -> TypeExpr:
        members = [self._postfix()]
        while self._accept("&"):
            members.append(self._postfix())
        if len(members) == 1:
            return members[0]
        return IntersectionType(members=members)

    def _postfix(self) -> TypeExpr:
        result = self._primary()
        while self._peek() == "[":
            self._expect("[")
            self._expect("]")
            result = ArrayType(element=result)
        return result

    def _primary(self) -> TypeExpr:
        kind, value = self._next()
        if kind == "string":
            return LiteralType(value=ast.literal_eval(value))
        if kind == "number":
            return LiteralType(value=ast.literal_eval(value))
        if value == "(":
            inner = self._union()
            self._expect(")")
            return inner
        if value == "{":
            return self._object()
        if kind != "ident":
            raise ValueError(f"Unexpected {value!r} in type {self.text!r}")
        if value in ("true", "false"):
            return LiteralType(value=value == "true")
        arguments: list[TypeExpr] = []
        if self._accept("<"):
            arguments.append(self._union())
            while self._accept(","):
                arguments.append(self._union())
            self._expect(">")
        if not arguments and value in KEYWORDS:
            return KeywordType(name=value)
        if value == "Array" and len(arguments) == 1:
            return ArrayType(element=arguments[0])
        return ReferenceType(name=value, arguments=arguments)

    def _object(self) -> TypeExpr:
        properties: list[PropertyDecl] = []
        while not self._accept("}"):
            kind, name = self._next()
            if kind == "string":
                name = ast.literal_eval(name)
            elif kind != "ident":
                raise ValueError(f"Expected a property name but found {name!r} in type {self.text!r}")
            optional = self._accept("?")
            self._expect(":")
            properties.append(PropertyDecl(name=name, type=self._union(), optional=optional))
            if not (self._accept(";") or self._accept(",")):
                self._expect("}")
                break
        return ObjectType(properties=properties)


def parse_type_text(text: str) -> TypeExpr:
    """Parse ``text`` into a type expression.

    Text outside the supported grammar (tuples, function types,
    ``keyof``...) is kept verbatim as an ``other`` type. Only empty
    text raises ``ValueError``.
    """
    if not text.strip():
        raise ValueError("Empty type text")
    try:
        return _TypeParser(text).parse()
    except ValueError as e:
        logger.warning("Keeping unsupported type %r as text: %s", text, e)
        return OtherType(text=text.strip())
