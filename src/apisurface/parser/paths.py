"""Route path helpers: annotation arguments to URL templates."""

import re
from typing import Any

from apisurface.errors import ExtractionError

_REPEATED_SLASHES = re.compile(r"/{2,}")
_TRAILING_SLASH = re.compile(r"(.+)/$")
_PLACEHOLDER = re.compile(r":([A-Za-z_$][\w$]*)")


def join_paths(*parts: str) -> str:
    """Join URL fragments: ``join_paths("users", ":id") == "/users/:id"``."""
    joined = "/".join(["", *parts, ""])
    joined = _REPEATED_SLASHES.sub("/", joined)
    return _TRAILING_SLASH.sub(r"\1", joined)


def literal_path(argument: Any, allow_object: bool = False) -> str:
    """Read a route path from an annotation argument.

    Accepts a string, a list of strings (joined with ``/``) and, when
    ``allow_object`` is set, a mapping whose ``path`` entry is read the
    same way. Anything else is rejected.
    """
    if isinstance(argument, str):
        return argument
    if isinstance(argument, (list, tuple)):
        if not all(isinstance(item, str) for item in argument):
            raise ExtractionError("unknown argument type in path list")
        return "/".join(argument)
    if isinstance(argument, dict) and allow_object:
        if "path" not in argument:
            raise ExtractionError("unknown argument type: object without 'path'")
        return literal_path(argument["path"])
    raise ExtractionError(f"unknown argument type {type(argument).__name__}")


def to_openapi_path(url: str) -> str:
    """``/users/:id`` -> ``/users/{id}``."""
    return _PLACEHOLDER.sub(r"{\1}", url)


def placeholders(url: str) -> list[str]:
    return _PLACEHOLDER.findall(url)


def split_placeholders(url: str) -> list[tuple[str, str | None]]:
    """Split ``url`` into ``(literal, placeholder)`` pairs.

    ``/users/:id/posts`` -> ``[("/users/", "id"), ("/posts", None)]``
    """
    result: list[tuple[str, str | None]] = []
    pos = 0
    for match in _PLACEHOLDER.finditer(url):
        result.append((url[pos:match.start()], match.group(1)))
        pos = match.end()
    if pos < len(url) or not result:
        result.append((url[pos:], None))
    return result
