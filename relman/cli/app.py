from __future__ import annotations

import os
import sys
from pathlib import Path

import typer

from relman import __version__
from relman.cli.commands.delete_cmd import delete
from relman.cli.commands.publish_cmd import publish
from relman.cli.commands.query import check, health, notes, releases
from relman.cli.context import CONFIG_ENV
from relman.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(check)
app.command()(releases)
app.command()(notes)
app.command()(health)
app.command()(publish)
app.command()(delete)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="TOML config file (default: ./relman.toml if present)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if config is not None:
        path = config.expanduser()
        if not path.is_file():
            typer.echo(f"error: --config '{path}' does not exist", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        os.environ[CONFIG_ENV] = str(path)


def main() -> None:
    try:
        app()
    except Exception as e:  # noqa: BLE001
        typer.echo(f"error: internal error: {e}", err=True)
        sys.exit(int(ErrorCode.INTERNAL_ERROR))
