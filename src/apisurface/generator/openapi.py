"""OpenAPI 3.0 document generator.

The document is built fresh from the controllers and the type catalog on
every call; nothing is shared between runs.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from apisurface.config import OpenApiOutput
from apisurface.parser.base import Binding, Controller, PartialBinding, Request, WholeBinding
from apisurface.parser.paths import to_openapi_path
from apisurface.schema.catalog import TypeCatalog
from apisurface.schema.nodes import Object, Property, SchemaNode, Unknown, to_openapi
from apisurface.schema.resolver import SchemaResolver
from apisurface.source.model import ClassTypeDecl, InterfaceDecl, ReferenceType

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.0"
JSON_CONTENT = "application/json"


class OpenApiGenerator:
    """Renders controllers and catalog declarations as an OpenAPI document."""

    def __init__(self, output: OpenApiOutput, catalog: TypeCatalog):
        self.output = output
        self.catalog = catalog
        self.resolver = SchemaResolver(catalog)

    def generate(self, controllers: list[Controller]) -> dict[str, str]:
        document = self.build(controllers)
        text = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
        return {self.output.dest: text}

    def build(self, controllers: list[Controller]) -> dict[str, Any]:
        info = self.output.info.model_dump(exclude_none=True)
        paths: dict[str, dict[str, Any]] = {}
        tags = []
        for controller in controllers:
            if controller.docs.description:
                tags.append({"name": controller.name, "description": controller.docs.description.strip()})
            for request in controller.requests:
                url = to_openapi_path(request.url)
                operations = paths.setdefault(url, {})
                if request.method in operations:
                    logger.warning("Duplicate operation %s %s: the later one wins", request.verb.value, url)
                operations[request.method] = self._operation(controller, request)

        schemas = self._components()
        logger.info("OpenAPI: %d path(s), %d schema(s)", len(paths), len(schemas))
        return {
            "openapi": OPENAPI_VERSION,
            "info": info,
            "paths": paths,
            "components": {"schemas": schemas},
            "tags": tags,
        }

    def _components(self) -> dict[str, Any]:
        schemas = {}
        for decl in self.catalog:
            node = self.resolver.resolve_declaration(decl)
            if node is None:
                logger.debug("Declaration %s has no schema, skipped", decl.name)
                continue
            schemas[decl.name] = to_openapi(node)
        return schemas

    def _operation(self, controller: Controller, request: Request) -> dict[str, Any]:
        operation: dict[str, Any] = {}
        if request.docs.description:
            operation["description"] = request.docs.description
        operation["parameters"] = [
            *self._partial_parameters(request, request.params or (), "path"),
            *self._query_parameters(request),
        ]
        body = self._request_body(request)
        if body is not None:
            operation["requestBody"] = body
        operation["responses"] = {"200": self._response(request)}
        operation["tags"] = [controller.name]
        return operation

    def _resolve(self, request: Request, expr) -> SchemaNode | None:
        return self.resolver.resolve(expr, request.type_parameters)

    def _partial_parameters(
        self, request: Request, bindings: tuple[PartialBinding, ...], location: str
    ) -> list[dict[str, Any]]:
        result = []
        for binding in bindings:
            parameter = binding.parameter
            entry: dict[str, Any] = {
                "name": binding.property,
                "in": location,
                "required": not parameter.optional,
            }
            description = request.docs.params.get(parameter.name)
            if description:
                entry["description"] = description
            entry["schema"] = to_openapi(self._resolve(request, parameter.type) or Unknown())
            result.append(entry)
        return result

    def _query_parameters(self, request: Request) -> list[dict[str, Any]]:
        if request.query is None:
            return []
        if not isinstance(request.query, WholeBinding):
            return self._partial_parameters(request, request.query, "query")

        parameter = request.query.parameter
        target = parameter.type
        decl = self.catalog.get(target.name) if isinstance(target, ReferenceType) else None
        if not isinstance(decl, (InterfaceDecl, ClassTypeDecl)):
            logger.warning(
                "%s: query object %r is not a known interface or class, no parameters emitted",
                request.name, parameter.name,
            )
            return []
        result = []
        for prop in self.catalog.properties_with_inherited(decl.name):
            entry: dict[str, Any] = {
                "name": prop.name,
                "in": "query",
                "required": not prop.optional,
            }
            if prop.docs:
                entry["description"] = prop.docs
            entry["schema"] = to_openapi(
                self.resolver.resolve(prop.type, decl.type_parameters) or Unknown()
            )
            result.append(entry)
        return result

    def _request_body(self, request: Request) -> dict[str, Any] | None:
        binding: Binding | None = request.data
        if not binding:
            return None
        if isinstance(binding, WholeBinding):
            schema = self._resolve(request, binding.parameter.type)
            required = not binding.parameter.optional
        else:
            properties = []
            for partial in binding:
                node = self._resolve(request, partial.parameter.type)
                properties.append(Property(
                    partial.property,
                    node or Unknown(),
                    not partial.parameter.optional,
                    request.docs.params.get(partial.parameter.name, ""),
                ))
            schema = Object(tuple(properties))
            required = any(p.required for p in properties)
        if schema is None:
            return None
        return {
            "required": required,
            "content": {JSON_CONTENT: {"schema": to_openapi(schema)}},
        }

    def _response(self, request: Request) -> dict[str, Any]:
        response: dict[str, Any] = {"description": request.docs.returns}
        schema = self._resolve(request, request.return_type)
        if schema is not None:
            response["content"] = {JSON_CONTENT: {"schema": to_openapi(schema)}}
        return response
