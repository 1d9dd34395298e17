"""Declaration manifest reader.

A manifest is a JSON or YAML dump of the source model: one unit, a list
of units, or a mapping with a ``units`` list. Types may be written as
TypeScript-style text, and ``{"$expression": "..."}`` marks an
annotation argument that is not a literal::

    path: users.controller.ts
    classes:
      - name: UsersController
        annotations: [{name: Controller, arguments: [users]}]
        methods:
          - name: findOne
            annotations: [{name: Get, arguments: [":id"]}]
            parameters:
              - {name: id, type: number, annotations: [{name: Param, arguments: [id]}]}
            return_type: Promise<User>
"""

from pathlib import Path

import yaml
from pydantic import ValidationError

from apisurface.errors import SourceError
from apisurface.source.model import SourceUnit


def read_manifest(file_path: Path) -> list[SourceUnit]:
    """Read every source unit recorded in a manifest file."""
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise SourceError(f"Not UTF-8 text: {e}", str(file_path)) from e
    except yaml.YAMLError as e:
        raise SourceError(f"Invalid manifest: {e}", str(file_path)) from e

    if isinstance(data, dict) and "units" in data:
        items = data["units"]
    elif isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        items = [data]
    else:
        raise SourceError("Manifest must contain a unit, a list of units or 'units'", str(file_path))
    if items is None:
        items = []
    if not isinstance(items, list):
        raise SourceError("'units' must be a list", str(file_path))

    units = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise SourceError(f"Unit #{index} is not a mapping", str(file_path))
        item = {"path": str(file_path), **item}
        try:
            units.append(SourceUnit.model_validate(item))
        except ValidationError as e:
            raise SourceError(f"Invalid unit #{index}: {e}", str(file_path)) from e
    return units
