"""Request extraction: one annotated handler method to one Request."""

from __future__ import annotations

import logging
from typing import Final

from apisurface.errors import ExtractionError
from apisurface.parser.base import Binding, PartialBinding, Request, Verb, WholeBinding
from apisurface.parser.paths import join_paths, literal_path
from apisurface.schema.resolver import ASYNC_WRAPPERS
from apisurface.source.model import ANY, Annotation, MethodDecl, ReferenceType, TypeExpr

logger = logging.getLogger(__name__)

VERB_ANNOTATIONS: Final[dict[str, Verb]] = {
    "Get": Verb.GET,
    "Post": Verb.POST,
    "Put": Verb.PUT,
    "Patch": Verb.PATCH,
    "Delete": Verb.DELETE,
}

# Binding annotation -> Request field it feeds. @Headers bindings are never
# part of the wire representation.
BINDING_SOURCES: Final[dict[str, str]] = {
    "Param": "params",
    "Query": "query",
    "Body": "data",
}


def field_name(annotation: Annotation) -> str | None:
    """The explicit field a binding annotation names, if any.

    ``@Query('page')`` names ``page``; ``@Query()`` and
    ``@Body(new ValidationPipe())`` name nothing.
    """
    if annotation.arguments and isinstance(annotation.arguments[0], str):
        return annotation.arguments[0]
    return None


def method_path(annotation: Annotation, location: str | None = None) -> str:
    if not annotation.arguments:
        return ""
    try:
        return literal_path(annotation.arguments[0])
    except ExtractionError as exc:
        raise ExtractionError(str(exc), location, annotation.name) from exc


def unwrap_return_type(expr: TypeExpr | None) -> TypeExpr:
    """``Promise<User>`` -> ``User``; anything else is kept as declared."""
    if expr is None:
        return ANY
    if (
        isinstance(expr, ReferenceType)
        and expr.name in ASYNC_WRAPPERS
        and len(expr.arguments) == 1
    ):
        return expr.arguments[0]
    return expr


def classify_parameters(method: MethodDecl, location: str | None = None) -> dict[str, Binding]:
    """Group the annotated parameters of ``method`` by payload source.

    A binding without a field name is the whole payload of its source:
    the first one wins, and partial bindings of the same source, before
    or after it, are dropped.
    """
    partials: dict[str, list[PartialBinding]] = {}
    wholes: dict[str, WholeBinding] = {}
    for parameter in method.parameters:
        annotation = next(
            (a for a in parameter.annotations if a.name in BINDING_SOURCES), None
        )
        if annotation is None:
            continue
        source = BINDING_SOURCES[annotation.name]
        name = field_name(annotation)
        if name is None and source == "params":
            raise ExtractionError(
                f"path parameter {parameter.name!r} needs a field name",
                location,
                annotation.name,
            )
        if source in wholes:
            logger.warning(
                "%s: parameter %r ignored, %r already binds the whole %s payload",
                location or method.name, parameter.name,
                wholes[source].parameter.name, source,
            )
            continue
        if name is None:
            dropped = partials.pop(source, [])
            if dropped:
                # TODO: decide whether mixing whole and partial bindings should be an error
                logger.warning(
                    "%s: whole %s binding %r discards partial bindings %s",
                    location or method.name, source, parameter.name,
                    ", ".join(repr(p.parameter.name) for p in dropped),
                )
            wholes[source] = WholeBinding(parameter=parameter)
        else:
            partials.setdefault(source, []).append(
                PartialBinding(property=name, parameter=parameter)
            )

    result: dict[str, Binding] = dict(wholes)
    for source, bindings in partials.items():
        result[source] = tuple(bindings)
    return result


def extract_request(
    method: MethodDecl, base_path: str, location: str | None = None
) -> Request | None:
    """Build the Request for ``method``, or ``None`` if it is not a handler."""
    verb = method.find_annotation(frozenset(VERB_ANNOTATIONS))
    if verb is None:
        return None
    location = f"{location}.{method.name}" if location else method.name
    url = join_paths(base_path, method_path(verb, location))
    bindings = classify_parameters(method, location)
    logger.debug("%s %s -> %s", verb.name.upper(), url, method.name)
    return Request(
        name=method.name,
        url=url,
        verb=VERB_ANNOTATIONS[verb.name],
        params=bindings.get("params"),
        query=bindings.get("query"),
        data=bindings.get("data"),
        return_type=unwrap_return_type(method.return_type),
        docs=method.docs,
        type_parameters=method.type_parameters,
    )
