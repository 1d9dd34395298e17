"""Axios client stub generator.

Emits one exported namespace per controller, one function per request::

    export namespace USERS {
      export function findOne(id: number): Promise<User> {
        return http.request({
          method: 'get',
          url: `/users/${id}`,
        });
      }
    }

followed by the type declarations those functions reference, in the
same file or in a separate types file.
"""

from __future__ import annotations

import logging
import posixpath
import re

from apisurface.config import AxiosOutput
from apisurface.generator.typescript import Formatter, quote, type_parameter_list, type_text
from apisurface.parser.base import Binding, Controller, Request, WholeBinding
from apisurface.parser.paths import split_placeholders
from apisurface.schema.catalog import TypeCatalog, type_references
from apisurface.source.model import DocComment

logger = logging.getLogger(__name__)

HTTP_NAME = "http"
CONFIG_TYPE = "AxiosRequestConfig"
_IMPORT = re.compile(r"^import (?:type )?(?:(?P<default>\w+)|\{ (?P<named>[^}]*) \}) from ")


def relative_module(module: str, from_file: str) -> str:
    """Module specifier of ``module`` as imported from ``from_file``.

    ``relative_module("src/lib/http.ts", "src/api/client.ts") == "../lib/http"``
    """
    path = posixpath.relpath(module, posixpath.dirname(from_file) or ".")
    path = posixpath.splitext(path)[0]
    if not path.startswith((".", "/")):
        path = f"./{path}"
    return path


def payload_expression(binding: Binding) -> str:
    """``opts`` for a whole binding, ``{ name: n, id: i }`` for partial ones.

    A field bound twice keeps the last parameter.
    """
    if isinstance(binding, WholeBinding):
        return binding.parameter.name
    fields: dict[str, str] = {}
    for partial in binding:
        fields[partial.property] = partial.parameter.name
    if not fields:
        return "{}"
    return "{ " + ", ".join(f"{key}: {value}" for key, value in fields.items()) + " }"


def url_expression(request: Request) -> str:
    """The request URL, interpolated when the request binds path fields."""
    if not request.params:
        return quote(request.url)
    names = {p.property: p.parameter.name for p in request.params}
    parts = []
    for literal, placeholder in split_placeholders(request.url):
        parts.append(literal.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${"))
        if placeholder is not None:
            parts.append(f"${{{names.get(placeholder, placeholder)}}}")
    return "`" + "".join(parts) + "`"


def doc_lines(docs: DocComment) -> list[str]:
    lines = docs.description.splitlines() if docs.description else []
    for name, text in docs.params.items():
        lines.append(f"@param {name} {text}".rstrip())
    if docs.returns:
        lines.append(f"@returns {docs.returns}")
    return lines


class ClientGenerator:
    """Renders controllers into TypeScript request functions."""

    def __init__(self, output: AxiosOutput, catalog: TypeCatalog):
        self.output = output
        self.catalog = catalog
        self.fmt = Formatter(output.format_settings.indent_size, output.format_settings.semicolons)
        if isinstance(output.dest, str):
            self.requests_file = self.types_file = output.dest
        else:
            self.requests_file = output.dest.request_file
            self.types_file = output.dest.types_file

    @property
    def split(self) -> bool:
        return self.requests_file != self.types_file

    def generate(self, controllers: list[Controller]) -> dict[str, str]:
        """Render every output file. Returns ``{dest: content}``."""
        body: list[str] = []
        referenced: set[str] = set()
        for controller in controllers:
            body.extend(self._render_namespace(controller, referenced))
            body.append("")

        type_names = self.catalog.referenced_closure(sorted(referenced))
        types: list[str] = []
        for name in type_names:
            types.extend(self.fmt.declaration(self.catalog.get(name)))
            types.append("")
        logger.info(
            "Client: %d controller(s), %d type declaration(s)", len(controllers), len(type_names)
        )

        imports = [
            self.fmt.statement(f"import {HTTP_NAME} from {quote(self._http_module())}"),
        ]
        if self.output.options:
            imports.append(self.fmt.statement(f"import type {{ {CONFIG_TYPE} }} from 'axios'"))
        if not self.split:
            return {self.requests_file: self._assemble(imports, body + types)}

        if type_names:
            imports.append(self.fmt.statement(
                f"import type {{ {', '.join(type_names)} }} "
                f"from {quote(relative_module(self.types_file, self.requests_file))}"
            ))
        return {
            self.requests_file: self._assemble(imports, body),
            self.types_file: self._assemble([], types),
        }

    def _http_module(self) -> str:
        if not self.output.http_module:
            return "axios"
        return relative_module(self.output.http_module, self.requests_file)

    def _assemble(self, imports: list[str], body: list[str]) -> str:
        text = "\n".join(body)
        kept = prune_imports(imports, text)
        parts = []
        if self.output.comment:
            parts.append(self.output.comment.rstrip("\n") + "\n")
        if kept:
            parts.append("\n".join(kept) + "\n")
        text = text.strip("\n")
        if text:
            parts.append(text + "\n")
        return "\n".join(parts)

    # -- namespaces and functions ---------------------------------------------

    def _render_namespace(self, controller: Controller, referenced: set[str]) -> list[str]:
        lines = self.fmt.doc_block(doc_lines(controller.docs), 0)
        lines.append(f"export namespace {controller.name.upper()} {{")
        for index, request in enumerate(controller.requests):
            if index:
                lines.append("")
            lines.extend(self._render_function(request, referenced))
        lines.append("}")
        return lines

    def _render_function(self, request: Request, referenced: set[str]) -> list[str]:
        fmt = self.fmt
        own_params = set(request.type_parameters)
        parameters = []
        formal = request.parameters()
        # An optional parameter may not precede a required one.
        trailing = len(formal)
        while trailing and formal[trailing - 1].optional:
            trailing -= 1
        for index, parameter in enumerate(formal):
            text = type_text(parameter.type)
            if parameter.optional and index < trailing:
                parameters.append(f"{parameter.name}: {text} | undefined")
            else:
                optional = "?" if parameter.optional else ""
                parameters.append(f"{parameter.name}{optional}: {text}")
            referenced |= type_references(parameter.type) - own_params
        if self.output.options:
            parameters.append(f"{self.output.options}?: {CONFIG_TYPE}")
        referenced |= type_references(request.return_type) - own_params

        signature = (
            f"export function {request.name}{type_parameter_list(request.type_parameters)}"
            f"({', '.join(parameters)}): Promise<{type_text(request.return_type)}> {{"
        )
        options = [f"method: {quote(request.method)},", f"url: {url_expression(request)},"]
        if request.query:
            options.append(f"params: {payload_expression(request.query)},")
        if request.data:
            options.append(f"data: {payload_expression(request.data)},")
        if self.output.options:
            options.append(f"...{self.output.options},")

        lines = fmt.doc_block(doc_lines(request.docs), 1)
        lines.append(fmt.indent(1, signature))
        lines.append(fmt.indent(2, f"return {HTTP_NAME}.request({{"))
        lines.extend(fmt.indent(3, option) for option in options)
        lines.append(fmt.indent(2, fmt.statement("})")))
        lines.append(fmt.indent(1, "}"))
        return lines


def prune_imports(imports: list[str], body: str) -> list[str]:
    """Drop imports, and named import members, that ``body`` never uses."""
    kept = []
    for line in imports:
        match = _IMPORT.match(line)
        if match is None:
            kept.append(line)
            continue
        if match.group("default"):
            if re.search(rf"\b{re.escape(match.group('default'))}\b", body):
                kept.append(line)
            continue
        names = [name.strip() for name in match.group("named").split(",")]
        used = [name for name in names if re.search(rf"\b{re.escape(name)}\b", body)]
        if used:
            kept.append(line.replace(match.group("named"), ", ".join(used), 1))
    return kept
