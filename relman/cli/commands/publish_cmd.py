from __future__ import annotations

from pathlib import Path

import typer

from relman.cli.commands._helpers import exit_on_error
from relman.cli.context import build_context
from relman.core.errors import ErrorCode
from relman.output.console import Style
from relman.services.publish import PublishRequest, upload_release


def publish(
    product: str = typer.Option(..., "--product", help="desktop, instrument or recovery"),
    version: str = typer.Option(..., "--version", help="Comparison version, numeric dotted"),
    notes: Path = typer.Option(..., "--notes", help="Release notes file (markdown)"),
    windows: Path | None = typer.Option(None, "--windows", help="Desktop installer for Windows"),
    macos: Path | None = typer.Option(None, "--macos", help="Desktop installer for macOS"),
    linux: Path | None = typer.Option(None, "--linux", help="Desktop installer for Linux"),
    default: Path | None = typer.Option(None, "--default", help="Desktop fallback installer"),
    file: Path | None = typer.Option(None, "--file", help="Instrument/recovery artifact"),
    model: str | None = typer.Option(None, "--model", help="Instrument model"),
    channel: str | None = typer.Option(None, "--channel", help="production (default) or preview"),
    display_version: str | None = typer.Option(
        None, "--display-version", help="Version shown to users (e.g. 2025.3.0-rc9)"
    ),
    display_name: str | None = typer.Option(None, "--display-name", help="Release title"),
    description: str | None = typer.Option(None, "--description", help="Short description"),
    required: bool = typer.Option(False, "--required", help="Mark the update as required"),
    release_date: str | None = typer.Option(
        None, "--release-date", help="YYYY-MM-DD (default: today, UTC)"
    ),
) -> None:
    """Upload notes and artifacts, then upsert the release into the manifest."""
    ctx = build_context(stderr=False)
    if ctx.store is None:
        ctx.console.error("no object store configured")
        ctx.console.print(
            "hint: set AZURE_STORAGE_ACCOUNT (or a connection string) and a signing key or token",
            Style.DIM,
        )
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    platform_files = {
        key: path
        for key, path in (("windows", windows), ("macos", macos), ("linux", linux), ("default", default))
        if path is not None
    }
    request = PublishRequest(
        product=product,
        version=version,
        notes=notes,
        platform_files=platform_files,
        file=file,
        model=model,
        channel=channel,
        display_version=display_version,
        display_name=display_name,
        description=description,
        required=required,
        release_date=release_date,
    )

    entry = exit_on_error(
        upload_release(request, store=ctx.store, clock=ctx.clock, console=ctx.console),
        ctx,
    )
    ctx.console.print(f"Updating manifest: {ctx.service.manifests.name}")
    document = exit_on_error(ctx.service.publish_release(entry), ctx)
    ctx.console.success(f"published {entry.key} ({len(document.updates)} entries in manifest)")
