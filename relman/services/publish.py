"""Turning local release files into a published manifest entry.

Uploads the release notes and the artifacts, then builds the ReleaseEntry
that UpdateService.publish_release upserts. Object names are the file
basenames, except release notes, which are renamed to
`<product>[-<model>]-<version>-notes<ext>` unless the file name
already says which release it belongs to.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

from relman.core.clock import Clock
from relman.core.result import Err, Ok, Result
from relman.manifest.errors import UpdateError
from relman.manifest.model import (
    CHANNELS,
    INSTRUMENT_MODELS,
    PLATFORM_KEYS,
    PRODUCTS,
    NotesRef,
    ReleaseEntry,
)
from relman.output.console import ConsoleProtocol
from relman.storage.store import ObjectStore

__all__ = ["PublishRequest", "notes_object_name", "upload_release", "validate_publish_request"]


def _empty_paths() -> dict[str, Path]:
    return {}


@dataclass(frozen=True, slots=True)
class PublishRequest:
    product: str
    version: str
    notes: Path
    platform_files: dict[str, Path] = field(default_factory=_empty_paths)
    file: Path | None = None
    model: str | None = None
    channel: str | None = None
    display_version: str | None = None
    display_name: str | None = None
    description: str | None = None
    required: bool = False
    release_date: str | None = None


def _bad(message: str, hint: str | None = None) -> Err[UpdateError]:
    return Err(UpdateError(kind="bad_request", message=message, hint=hint))


def validate_publish_request(req: PublishRequest) -> Result[PublishRequest, UpdateError]:
    if req.product not in PRODUCTS:
        return _bad(f"invalid product: {req.product!r}", "One of: " + ", ".join(PRODUCTS))
    if not req.version.strip():
        return _bad("missing version")
    if req.channel is not None and req.channel not in CHANNELS:
        return _bad(f"invalid channel: {req.channel!r}", "One of: " + ", ".join(CHANNELS))

    unknown = sorted(set(req.platform_files) - set(PLATFORM_KEYS))
    if unknown:
        return _bad(f"unknown platform: {', '.join(unknown)}", "One of: " + ", ".join(PLATFORM_KEYS))

    if req.product == "desktop":
        if not req.platform_files:
            return _bad(
                "for desktop, provide at least one of --windows/--macos/--linux/--default"
            )
        if req.file is not None:
            return _bad("desktop releases take per-platform files, not --file")
    else:
        if req.file is None:
            return _bad(f"for {req.product}, --file is required")
        if req.platform_files:
            return _bad(f"{req.product} releases take a single --file")

    if req.model is not None:
        if req.product != "instrument":
            return _bad("--model is only valid for instrument releases")
        if req.model not in INSTRUMENT_MODELS:
            return _bad(f"invalid model: {req.model!r}", "One of: " + ", ".join(INSTRUMENT_MODELS))

    for path in (req.notes, req.file, *req.platform_files.values()):
        if path is not None and not path.is_file():
            return _bad(f"file not found: {path}")

    return Ok(req)


def notes_object_name(product: str, version: str, notes: Path, model: str | None = None) -> str:
    release = f"{product}-{model}-{version}" if model else f"{product}-{version}"
    if release in notes.name:
        return notes.name
    return f"{release}-notes{notes.suffix}"


def _content_type(path: Path) -> str:
    if path.suffix.lower() in (".md", ".markdown"):
        return "text/markdown; charset=utf-8"
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


def _upload(
    store: ObjectStore,
    path: Path,
    name: str,
    console: ConsoleProtocol,
) -> Result[str, UpdateError]:
    console.print(f"Uploading: {name}")
    try:
        data = path.read_bytes()
    except OSError as e:
        return _bad(f"failed to read {path}: {e}")
    put = store.put(name, data, _content_type(path))
    if isinstance(put, Err):
        return Err(
            UpdateError(
                kind="upstream_unavailable",
                message=f"failed to upload {name}",
                hint=str(put.error),
            )
        )
    return Ok(name)


def _default_display_name(product: str, version: str) -> str:
    match product:
        case "desktop":
            return f"Essentials Desktop {version}"
        case "instrument":
            return f"Instrument {version}"
        case _:
            return f"Recovery {version}"


def upload_release(
    req: PublishRequest,
    *,
    store: ObjectStore,
    clock: Clock,
    console: ConsoleProtocol,
) -> Result[ReleaseEntry, UpdateError]:
    """Upload notes and artifacts, and return the entry describing them.

    Uploads overwrite objects of the same name. Nothing is rolled back if a
    later upload fails; the manifest is only touched by the caller after
    this returns Ok.
    """
    validated = validate_publish_request(req)
    if isinstance(validated, Err):
        return validated

    notes_name = notes_object_name(req.product, req.version, req.notes, req.model)
    console.print(f"Uploading release notes: {notes_name}")
    uploaded = _upload(store, req.notes, notes_name, console)
    if isinstance(uploaded, Err):
        return uploaded

    files: dict[str, str] = {}
    single: str | None = None
    if req.product == "desktop":
        for platform in PLATFORM_KEYS:
            path = req.platform_files.get(platform)
            if path is None:
                continue
            result = _upload(store, path, path.name, console)
            if isinstance(result, Err):
                return result
            files[platform] = result.value
    elif req.file is not None:
        result = _upload(store, req.file, req.file.name, console)
        if isinstance(result, Err):
            return result
        single = result.value

    extra: dict[str, object] = {
        "displayName": req.display_name or _default_display_name(req.product, req.version),
        "description": req.description or f"{req.product.capitalize()} update",
        "features": [],
    }
    return Ok(
        ReleaseEntry(
            product=req.product,
            version=req.version,
            model=req.model,
            display_version=req.display_version,
            channel=req.channel,
            release_date=req.release_date or clock.now().strftime("%Y-%m-%d"),
            is_required=req.required,
            files=files,
            file=single,
            release_notes=NotesRef(blob=notes_name, inline=False),
            extra=extra,
        )
    )
