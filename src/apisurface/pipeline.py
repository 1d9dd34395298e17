"""Generation pipeline: read sources, extract, resolve and emit.

Readers and writers are looked up in closed registries keyed by the
configuration's ``reader`` and ``writer`` selections. Each task builds
its own catalog and writer; tasks share no state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from apisurface.config import ReaderName, TaskConfig, WriterName
from apisurface.errors import ApiSurfaceError
from apisurface.generator.client import ClientGenerator
from apisurface.generator.openapi import OpenApiGenerator
from apisurface.generator.output import emit
from apisurface.parser.base import Controller
from apisurface.parser.controllers import extract_controllers
from apisurface.schema.catalog import TypeCatalog
from apisurface.source.manifest import read_manifest
from apisurface.source.model import SourceUnit
from apisurface.source.python import read_python

logger = logging.getLogger(__name__)

READERS: Final[dict[ReaderName, Callable[[Path], list[SourceUnit]]]] = {
    "manifest": read_manifest,
    "python": read_python,
}

WRITERS: Final[dict[WriterName, type[ClientGenerator] | type[OpenApiGenerator]]] = {
    "axios": ClientGenerator,
    "openapi": OpenApiGenerator,
}


@dataclass
class Extraction:
    controllers: list[Controller]
    catalog: TypeCatalog


@dataclass
class TaskResult:
    index: int
    written: list[Path] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def read_units(task: TaskConfig, files: list[Path]) -> list[SourceUnit]:
    reader = READERS[task.input.reader]
    units = []
    for file_path in files:
        logger.debug("Reading %s", file_path)
        units.extend(reader(file_path))
    return units


def extract(task: TaskConfig) -> Extraction:
    """Read a task's sources and build its controllers and catalog.

    Without ``types`` the controller sources double as type sources.
    """
    units = read_units(task, task.source_files())
    type_files = task.type_files()
    type_units = units if type_files is None else read_units(task, type_files)
    catalog = TypeCatalog.from_units(type_units)
    controllers = list(extract_controllers(units))
    logger.info("Extracted %d controller(s), %d type(s)", len(controllers), len(catalog))
    return Extraction(controllers, catalog)


def run_task(task: TaskConfig, stream: bool = False) -> list[Path]:
    """Run one task end to end. Returns the files written."""
    extraction = extract(task)
    writer = WRITERS[task.output.writer](task.output, extraction.catalog)
    files = writer.generate(extraction.controllers)
    return emit(files, task.root, stream)


def run_tasks(tasks: list[TaskConfig], stream: bool = False) -> list[TaskResult]:
    """Run every task; a failing task is logged and the rest still run."""
    results = []
    for index, task in enumerate(tasks):
        result = TaskResult(index)
        try:
            result.written = run_task(task, stream)
        except (ApiSurfaceError, OSError) as e:
            logger.error("Task #%d failed: %s", index, e)
            result.error = e
        results.append(result)
    return results
