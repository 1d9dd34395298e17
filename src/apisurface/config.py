"""Configuration file loading.

A configuration holds one generation task or a list of tasks::

    {
      "input": {"reader": "manifest", "sources": "src/**/*.controller.yaml",
                "types": ["src/**/*.dto.yaml"]},
      "output": {"writer": "axios", "dest": "client/api.ts",
                 "options": "config", "formatSettings": {"indentSize": 4}}
    }

Keys may be written in camelCase or snake_case.
"""

from __future__ import annotations

import glob
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Final, Literal, Union

import yaml
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from apisurface.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAMES: Final = ("apisurface.json", "apisurface.yaml", "apisurface.yml")

ReaderName = Literal["manifest", "python"]
WriterName = Literal["axios", "openapi"]


def _as_list(value: Any) -> Any:
    if isinstance(value, str):
        return [value]
    return value


Patterns = Annotated[list[str], BeforeValidator(_as_list)]


class _Config(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InputConfig(_Config):
    reader: ReaderName = "manifest"
    sources: Patterns
    types: Patterns | None = None


class SplitDest(_Config):
    request_file: str
    types_file: str


class FormatSettings(_Config):
    indent_size: int = Field(default=2, ge=0)
    semicolons: Literal["ignore", "insert", "remove"] = "ignore"


class AxiosOutput(_Config):
    writer: Literal["axios"]
    dest: str | SplitDest
    http_module: str | None = None
    options: str | None = None  # name of the trailing AxiosRequestConfig parameter
    comment: str | None = None
    format_settings: FormatSettings = FormatSettings()


class ApiInfo(_Config):
    title: str
    version: str
    description: str | None = None


class OpenApiOutput(_Config):
    writer: Literal["openapi"]
    dest: str
    spec: Literal["3.0"] = "3.0"
    info: ApiInfo


OutputConfig = Annotated[Union[AxiosOutput, OpenApiOutput], Field(discriminator="writer")]


class TaskConfig(_Config):
    """One generation task. Relative paths are resolved against ``root``."""

    input: InputConfig
    output: OutputConfig
    root: Path = Path(".")

    def resolve(self, path: str) -> Path:
        return self.root / path

    def source_files(self) -> list[Path]:
        return expand_patterns(self.input.sources, self.root)

    def type_files(self) -> list[Path] | None:
        if self.input.types is None:
            return None
        return expand_patterns(self.input.types, self.root)


def expand_patterns(patterns: list[str], root: Path) -> list[Path]:
    """Expand glob patterns relative to ``root``, deduplicated, in pattern order."""
    found: dict[Path, None] = {}
    for pattern in patterns:
        matches = sorted(glob.glob(str(root / pattern), recursive=True))
        if not matches:
            logger.warning("Pattern %r matched no files under %s", pattern, root)
        for match in matches:
            path = Path(match)
            if path.is_file():
                found.setdefault(path, None)
    return list(found)


def find_config(directory: Path) -> Path:
    for name in DEFAULT_CONFIG_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    raise ConfigError(f"No configuration file found (looked for {', '.join(DEFAULT_CONFIG_NAMES)})", str(directory))


def load_config(file_path: Path | None = None) -> list[TaskConfig]:
    """Load and validate every task of a configuration file.

    Without a path, the default names are looked up in the working
    directory. Any problem raises :class:`ConfigError` before a task runs.
    """
    if file_path is None:
        file_path = find_config(Path.cwd())
    if not file_path.is_file():
        raise ConfigError("Configuration file not found", str(file_path))

    try:
        text = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ConfigError(f"Configuration is not UTF-8 text: {e}", str(file_path)) from e
    try:
        if file_path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot parse configuration: {e}", str(file_path)) from e

    items = data if isinstance(data, list) else [data]
    if not items:
        raise ConfigError("Configuration holds no tasks", str(file_path))

    root = file_path.parent
    tasks = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ConfigError(f"Task #{index} is not a mapping", str(file_path))
        try:
            task = TaskConfig.model_validate(item)
        except ValidationError as e:
            raise ConfigError(f"Invalid task #{index}: {e}", str(file_path)) from e
        tasks.append(task.model_copy(update={"root": root}))
    logger.debug("Loaded %d task(s) from %s", len(tasks), file_path)
    return tasks
