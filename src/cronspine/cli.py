"""
``cronspine`` command line: inspect cron expressions without starting a host.
"""

from __future__ import annotations

import json
from datetime import datetime
from itertools import islice

import typer
from typer import Typer

from cronspine.schedule import Schedule, parse_schedule
from cronspine.settings import get_settings

app = Typer(
    name="cronspine",
    help="cronspine: recurring actions on cron expressions and intervals.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("cronspine")
        except PackageNotFoundError:
            from cronspine import __version__ as v
        typer.echo(f"cronspine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """cronspine CLI: validate schedules and preview fire times."""


def _occurrences(schedule: Schedule, start: datetime):
    current = start
    while True:
        current = schedule.next(current)
        yield current


def _parse_or_exit(expression: str) -> Schedule:
    result = parse_schedule(expression, get_settings().tzinfo)
    if result.is_err():
        typer.echo(str(result.error), err=True)
        raise typer.Exit(code=1)
    return result.unwrap()


@app.command("next")
def next_runs(
    expression: str = typer.Argument(..., help="Cron expression, descriptor or '@every <duration>'"),
    count: int = typer.Option(5, "--count", "-n", min=1, help="Number of fire times"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the next fire times of a schedule."""
    schedule = _parse_or_exit(expression)
    start = datetime.now(get_settings().tzinfo).astimezone(get_settings().tzinfo)
    times = [t.isoformat() for t in islice(_occurrences(schedule, start), count)]
    if json_out:
        typer.echo(json.dumps({"schedule": schedule.text, "next": times}))
        return
    for t in times:
        typer.echo(t)


@app.command("validate")
def validate(
    expression: str = typer.Argument(..., help="Cron expression to check"),
) -> None:
    """Exit 0 if the schedule parses, 1 with the parser message if not."""
    schedule = _parse_or_exit(expression)
    typer.echo(f"ok: {schedule.text}")


if __name__ == "__main__":
    app()
