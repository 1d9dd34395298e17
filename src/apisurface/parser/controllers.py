"""Controller extraction: annotated classes to Controllers."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from apisurface.errors import ExtractionError
from apisurface.parser.base import Controller
from apisurface.parser.paths import join_paths, literal_path
from apisurface.parser.requests import extract_request
from apisurface.source.model import Annotation, SourceUnit

logger = logging.getLogger(__name__)

CONTROLLER_ANNOTATION = "Controller"


def controller_path(annotation: Annotation, location: str | None = None) -> str:
    """Base path of a ``@Controller`` annotation.

    ``@Controller('users')``, ``@Controller(['api', 'users'])`` and
    ``@Controller({path: 'users'})`` are understood.
    """
    if not annotation.arguments:
        return ""
    try:
        return literal_path(annotation.arguments[0], allow_object=True)
    except ExtractionError as exc:
        raise ExtractionError(str(exc), location, annotation.name) from exc


def extract_controllers(units: Iterable[SourceUnit]) -> Iterator[Controller]:
    """Yield one Controller per annotated class, in source order.

    Controllers are named after the file they live in, not the class.
    """
    for unit in units:
        found = False
        for decl in unit.classes:
            annotation = decl.annotation(CONTROLLER_ANNOTATION)
            if annotation is None:
                continue
            found = True
            location = f"{unit.path}:{decl.name}"
            base_path = join_paths(controller_path(annotation, location))
            requests = []
            for method in decl.methods:
                request = extract_request(method, base_path, location)
                if request is not None:
                    requests.append(request)
            logger.info("Controller %s (%s): %d requests", unit.stem, base_path, len(requests))
            yield Controller(
                name=unit.stem,
                base_url=base_path,
                docs=decl.docs,
                requests=tuple(requests),
            )
        if not found:
            logger.debug("Skipping %s: no @%s class", unit.path, CONTROLLER_ANNOTATION)
