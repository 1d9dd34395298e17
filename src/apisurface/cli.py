"""CLI entry point for apisurface."""

import logging
import sys
from pathlib import Path

import click

from apisurface.config import load_config
from apisurface.errors import ApiSurfaceError
from apisurface.parser.base import Request, WholeBinding
from apisurface.pipeline import extract, run_tasks


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _describe_bindings(request: Request) -> str:
    parts = []
    for source, binding in (("params", request.params), ("query", request.query), ("data", request.data)):
        if not binding:
            continue
        if isinstance(binding, WholeBinding):
            parts.append(f"{source}={binding.parameter.name}")
        else:
            fields = ", ".join(f"{p.property}:{p.parameter.name}" for p in binding)
            parts.append(f"{source}={{{fields}}}")
    return " ".join(parts)


config_option = click.option(
    "-c", "--config", "config_path", default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (default: apisurface.json/.yaml/.yml in the working directory).",
)


@click.group()
def main():
    """apisurface: generate API clients and OpenAPI documents from annotated controllers."""
    pass


@main.command()
@config_option
@click.option("-s", "--stream", is_flag=True, help="Print artifacts to stdout instead of writing files.")
@click.option("-v", "--verbose", is_flag=True, help="Log debug details.")
def generate(config_path: Path | None, stream: bool, verbose: bool):
    """Run every task of the configuration."""
    _setup_logging(verbose)
    try:
        tasks = load_config(config_path)
    except ApiSurfaceError as e:
        raise click.ClickException(str(e)) from e

    results = run_tasks(tasks, stream=stream)
    failed = [r for r in results if not r.ok]
    if not stream:
        for result in results:
            for path in result.written:
                click.echo(f"  Created {path}")
        click.echo(f"Done: {len(results) - len(failed)}/{len(results)} task(s) succeeded.")
    if failed:
        sys.exit(1)


@main.command()
@config_option
@click.option("--task", "task_index", default=None, type=int, help="Only inspect the task at this index.")
def inspect(config_path: Path | None, task_index: int | None):
    """Print the extracted controllers and requests without writing anything."""
    _setup_logging(False)
    try:
        tasks = load_config(config_path)
        if task_index is not None:
            if not 0 <= task_index < len(tasks):
                raise click.BadParameter(f"no task #{task_index}", param_hint="--task")
            selected = [(task_index, tasks[task_index])]
        else:
            selected = list(enumerate(tasks))
        for index, task in selected:
            extraction = extract(task)
            click.echo(f"Task #{index} ({task.input.reader} -> {task.output.writer})")
            for controller in extraction.controllers:
                click.echo(f"  {controller.name.upper()} {controller.base_url}")
                for request in controller.requests:
                    line = f"    {request.verb.value:<6} {request.url}  {request.name}"
                    bindings = _describe_bindings(request)
                    if bindings:
                        line += f"  [{bindings}]"
                    click.echo(line)
            click.echo(f"  {len(extraction.catalog)} type declaration(s)")
    except ApiSurfaceError as e:
        raise click.ClickException(str(e)) from e
