"""Canonical data models for extracted API surfaces.

The extractors convert annotated controller declarations into these
models; every emitter consumes them without looking back at the source.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from apisurface.source.model import ANY, DocComment, ParameterDecl, TypeField


class Verb(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class WholeBinding(BaseModel):
    """A parameter that supplies an entire payload (``@Body() dto``)."""

    model_config = ConfigDict(frozen=True)

    parameter: ParameterDecl


class PartialBinding(BaseModel):
    """A parameter that supplies one named field of a payload (``@Query('page') p``)."""

    model_config = ConfigDict(frozen=True)

    property: str
    parameter: ParameterDecl


Binding = WholeBinding | tuple[PartialBinding, ...]


class Request(BaseModel):
    """A single API endpoint."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str  # /users/:id
    verb: Verb
    params: tuple[PartialBinding, ...] | None = None
    query: Binding | None = None
    data: Binding | None = None
    return_type: TypeField = ANY
    docs: DocComment = DocComment()
    type_parameters: tuple[str, ...] = ()

    @property
    def method(self) -> str:
        return self.verb.value.lower()

    def parameters(self) -> list[ParameterDecl]:
        """Formal wire parameters: params, then query, then data."""
        result = [p.parameter for p in self.params or ()]
        for binding in (self.query, self.data):
            if binding is None:
                continue
            if isinstance(binding, WholeBinding):
                result.append(binding.parameter)
            else:
                result.extend(p.parameter for p in binding)
        return result


class Controller(BaseModel):
    """Requests grouped under one annotated class."""

    model_config = ConfigDict(frozen=True)

    name: str
    base_url: str
    docs: DocComment = DocComment()
    requests: tuple[Request, ...] = ()
