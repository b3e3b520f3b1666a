"""Shared helpers for CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, TypeVar

import typer

from relman.core.errors import ErrorCode, code_for_kind
from relman.core.result import Err, Result
from relman.core.structured import StrDict
from relman.output.console import Style

if TYPE_CHECKING:
    from relman.cli.context import CLIContext


T = TypeVar("T")
E = TypeVar("E")


def exit_on_error[T, E](
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode | None = None,
) -> T:
    """Return the Ok value, or print the error and exit.

    Expects error objects to have 'message' and optional 'hint' attributes.
    Without an explicit `error_code`, the code is derived from the error's
    `kind` (see `code_for_kind`).
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(message)
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        if error_code is None:
            error_code = code_for_kind(getattr(error, "kind", "internal"))
        raise typer.Exit(code=int(error_code))
    return result.value


def echo_json(payload: StrDict) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
