"""Read-only commands. Each prints the JSON payload a client would receive."""

from __future__ import annotations

import typer

from relman.cli.commands._helpers import echo_json, exit_on_error
from relman.cli.context import build_context
from relman.manifest.model import DEFAULT_CHANNEL


def check(
    product: str = typer.Option(..., "--product", "-p", help="desktop, instrument or recovery"),
    current: str | None = typer.Option(None, "--current", help="Version the client runs"),
    model: str | None = typer.Option(None, "--model", help="Instrument model"),
    channel: str = typer.Option(DEFAULT_CHANNEL, "--channel", help="production or preview"),
    platform: str | None = typer.Option(None, "--platform", help="windows, macos or linux"),
    scenario: str | None = typer.Option(None, "--scenario", help="Force an applicability outcome"),
) -> None:
    """Check whether an update applies to a client."""
    ctx = build_context()
    result = ctx.service.check_update(
        product,
        current,
        model=model,
        channel=channel,
        platform=platform,
        scenario=scenario,
    )
    echo_json(exit_on_error(result, ctx).to_dict())


def releases(
    product: str = typer.Option(..., "--product", "-p", help="desktop, instrument or recovery"),
    model: str | None = typer.Option(None, "--model", help="Instrument model"),
    channel: str = typer.Option(DEFAULT_CHANNEL, "--channel", help="production or preview"),
) -> None:
    """List releases for a product, newest first."""
    ctx = build_context()
    listing = exit_on_error(ctx.service.list_releases(product, model=model, channel=channel), ctx)
    echo_json(listing.to_dict())


def notes(
    product: str = typer.Option(..., "--product", "-p", help="desktop, instrument or recovery"),
    version: str | None = typer.Option(None, "--version", help="Release version (default: latest)"),
    model: str | None = typer.Option(None, "--model", help="Instrument model"),
    channel: str = typer.Option(DEFAULT_CHANNEL, "--channel", help="production or preview"),
) -> None:
    """Resolve release notes to content and/or a time-limited link."""
    ctx = build_context()
    result = ctx.service.get_release_notes(product, version=version, model=model, channel=channel)
    echo_json(exit_on_error(result, ctx).to_dict())


def health() -> None:
    """Show the effective storage and signing setup."""
    ctx = build_context()
    echo_json(ctx.service.health())
