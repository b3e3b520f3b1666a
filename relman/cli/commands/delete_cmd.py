from __future__ import annotations

from collections.abc import Sequence

import typer

from relman.cli.commands._helpers import exit_on_error
from relman.cli.context import CLIContext, build_context
from relman.core.errors import ErrorCode
from relman.manifest.model import DEFAULT_CHANNEL
from relman.manifest.mutator import Candidate
from relman.manifest.selector import ReleaseFilters
from relman.output.console import RichConsole, Style


def delete(
    product: str = typer.Option(..., "--product", help="desktop, instrument or recovery"),
    model: str | None = typer.Option(None, "--model", help="Instrument model"),
    channel: str = typer.Option(DEFAULT_CHANNEL, "--channel", help="production or preview"),
    version: str | None = typer.Option(None, "--version", help="Only list this version"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompt"),
) -> None:
    """Remove one manifest entry and the files it references."""
    ctx = build_context(stderr=False)
    filters = ReleaseFilters(product=product, model=model, channel=channel, version=version)

    def choose(candidates: Sequence[Candidate]) -> int | None:
        _print_candidates(ctx, candidates)
        picked = _prompt_index(ctx, len(candidates))
        chosen = candidates[picked - 1].entry
        if yes:
            return picked
        if not typer.confirm(f"Delete {chosen.key} and its files?", default=False):
            return None
        return picked

    outcome = exit_on_error(ctx.service.delete_release(filters, choose), ctx)
    if outcome.declined:
        ctx.console.print("cancelled", Style.DIM)
        return

    assert outcome.removed is not None
    ctx.console.success(f"removed {outcome.removed.key} from manifest")
    for name in outcome.missing_objects:
        ctx.console.print(f"not found (skipped): {name}", Style.DIM)
    if outcome.failed_objects:
        for failure in outcome.failed_objects:
            ctx.console.warning(f"left behind: {failure.name} ({failure.message})")
        raise typer.Exit(code=int(ErrorCode.UPSTREAM_ERROR))


def _prompt_index(ctx: CLIContext, count: int) -> int:
    while True:
        raw = typer.prompt("Entry number to delete", default="1")
        try:
            idx = int(raw)
        except ValueError:
            ctx.console.error("invalid number")
            continue
        if idx < 1 or idx > count:
            ctx.console.error("out of range")
            continue
        return idx


def _print_candidates(ctx: CLIContext, candidates: Sequence[Candidate]) -> None:
    console = ctx.console
    if isinstance(console, RichConsole):
        from rich.table import Table

        table = Table(title="Matching releases")
        for column in ("#", "version", "display", "model", "channel", "date", "files"):
            table.add_column(column)
        for c in candidates:
            e = c.entry
            table.add_row(
                str(c.index),
                e.version,
                e.shown_version,
                e.model or "",
                e.effective_channel,
                e.release_date or "",
                ", ".join(e.referenced_objects()),
            )
        console.rich.print(table)
        return

    console.header("Matching releases")
    for c in candidates:
        e = c.entry
        files = ", ".join(e.referenced_objects())
        console.print(
            f"{c.index:2}. {e.version} ({e.shown_version}) {e.model or '-'} "
            f"{e.effective_channel} {e.release_date or '-'} [{files}]",
            Style.DIM,
        )
