"""Artifact output: atomic file writes or the stream sink."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import click

logger = logging.getLogger(__name__)


def write_atomic(file_path: Path, content: str) -> None:
    """Write ``content`` to a temporary sibling, then move it into place."""
    file_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{file_path.name}.", dir=file_path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(content)
        os.replace(tmp_name, file_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def emit(files: dict[str, str], root: Path, stream: bool = False) -> list[Path]:
    """Write rendered files under ``root``, or echo them to stdout when streaming.

    Every file is rendered in full before this is called, so a failing
    write never leaves a half-written artifact.
    """
    written = []
    for dest, content in files.items():
        if stream:
            click.echo(content, nl=False)
            continue
        path = root / dest
        write_atomic(path, content)
        logger.info("Wrote %s", path)
        written.append(path)
    return written
