"""Manifest document types and normalization.

The persisted manifest has had three shapes over time:
- a bare JSON array of entries (oldest tooling),
- an object with an `updates` array (current),
- anything else (missing, truncated or hand-broken files).

`classify` tags the raw JSON value with one of those shapes and `normalize`
turns any of them into a ManifestDocument. Nothing past normalization looks
at the raw shape again.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from relman.core.fallback import first_available
from relman.core.result import Err, Ok, Result
from relman.core.structured import (
    StrDict,
    as_obj_list,
    as_str_dict,
    get_bool,
    get_str,
    get_str_map,
)
from relman.manifest.errors import UpdateError

__all__ = [
    "CHANNELS",
    "DEFAULT_CHANNEL",
    "INSTRUMENT_MODELS",
    "PLATFORM_KEYS",
    "PRODUCTS",
    "Channel",
    "Product",
    "NotesRef",
    "ReleaseEntry",
    "ManifestDocument",
    "LegacyList",
    "ManifestObject",
    "Unrecognized",
    "RawManifest",
    "classify",
    "normalize",
    "parse_manifest",
    "dedup_key",
    "artifact_name",
    "normalize_platform",
]

Product = Literal["desktop", "instrument", "recovery"]
Channel = Literal["production", "preview"]

PRODUCTS: tuple[Product, ...] = ("desktop", "instrument", "recovery")
CHANNELS: tuple[Channel, ...] = ("production", "preview")
DEFAULT_CHANNEL: Channel = "production"
INSTRUMENT_MODELS = ("agera", "colorflex", "vista")
PLATFORM_KEYS = ("windows", "macos", "linux", "default")

DESKTOP_ARTIFACT_STEM = "Essentials Desktop"
RECOVERY_DEFAULT_ARTIFACT = "essentials-recovery-update.hunterlab"

# Keys owned by ReleaseEntry; everything else round-trips through `extra`.
_KNOWN_KEYS = frozenset(
    {
        "product",
        "model",
        "version",
        "displayVersion",
        "channel",
        "releaseDate",
        "isRequired",
        "files",
        "file",
        "releaseNotes",
        "releaseNotesBlob",
        "downloadUrl",
    }
)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class NotesRef:
    """Where an entry's release notes live.

    The string form of `releaseNotes` is an object name. The mapping form may
    carry literal `content`, an object name in `blob` (with `inline` asking
    for the text to be fetched and returned alongside the link), or an
    external `url`.
    """

    blob: str | None = None
    url: str | None = None
    content: str | None = None
    inline: bool = False
    # The string form is written back as a string.
    short_form: bool = False

    @classmethod
    def from_raw(cls, value: object, legacy_blob: str | None = None) -> NotesRef | None:
        if isinstance(value, str):
            name = value.strip()
            if name:
                return cls(blob=name, short_form=True)
        table = as_str_dict(value)
        if table is not None:
            content = table.get("content")
            ref = cls(
                blob=get_str(table, "blob") or legacy_blob,
                url=get_str(table, "url"),
                content=content if isinstance(content, str) and content else None,
                inline=get_bool(table, "inline"),
            )
            if ref.blob or ref.url or ref.content:
                return ref
        if legacy_blob:
            return cls(blob=legacy_blob)
        return None

    def to_raw(self) -> object:
        if self.short_form and self.blob and not (self.url or self.content or self.inline):
            return self.blob
        out: StrDict = {"inline": self.inline}
        if self.blob:
            out["blob"] = self.blob
        if self.url:
            out["url"] = self.url
        if self.content:
            out["content"] = self.content
        return out


def _empty_files() -> dict[str, str]:
    return {}


def _empty_extra() -> StrDict:
    return {}


def dedup_key(product: str, model: str | None, version: str) -> str:
    return f"{product}:{model or ''}:{version}"


@dataclass(frozen=True, slots=True)
class ReleaseEntry:
    """One publishable release of one product (and model) on one channel."""

    product: str
    version: str
    model: str | None = None
    display_version: str | None = None
    channel: str | None = None
    release_date: str | None = None
    is_required: bool = False
    files: dict[str, str] = field(default_factory=_empty_files)
    file: str | None = None
    release_notes: NotesRef | None = None
    download_url: str | None = None
    extra: StrDict = field(default_factory=_empty_extra)

    @property
    def effective_channel(self) -> str:
        return self.channel or DEFAULT_CHANNEL

    @property
    def shown_version(self) -> str:
        return self.display_version or self.version

    @property
    def key(self) -> str:
        return dedup_key(self.product, self.model, self.version)

    @property
    def released_at(self) -> datetime:
        """Release date as an aware datetime; unknown dates sort as oldest."""
        if not self.release_date:
            return _EPOCH
        raw = self.release_date.strip()
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return _EPOCH
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed

    def referenced_objects(self) -> tuple[str, ...]:
        """Every object name this entry points at, in a stable order."""
        names: list[str] = []
        if self.file:
            names.append(self.file)
        for platform in PLATFORM_KEYS:
            if platform in self.files:
                names.append(self.files[platform])
        for platform, name in self.files.items():
            if platform not in PLATFORM_KEYS:
                names.append(name)
        if self.release_notes is not None and self.release_notes.blob:
            names.append(self.release_notes.blob)

        seen: set[str] = set()
        unique: list[str] = []
        for n in names:
            if n in seen:
                continue
            seen.add(n)
            unique.append(n)
        return tuple(unique)

    @classmethod
    def from_dict(cls, data: StrDict) -> ReleaseEntry:
        return cls(
            product=get_str(data, "product") or "",
            version=get_str(data, "version") or "",
            model=get_str(data, "model"),
            display_version=get_str(data, "displayVersion"),
            channel=get_str(data, "channel"),
            release_date=get_str(data, "releaseDate"),
            is_required=get_bool(data, "isRequired"),
            files=get_str_map(data, "files"),
            file=get_str(data, "file"),
            release_notes=NotesRef.from_raw(
                data.get("releaseNotes"), legacy_blob=get_str(data, "releaseNotesBlob")
            ),
            download_url=get_str(data, "downloadUrl"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    def to_dict(self) -> StrDict:
        out: StrDict = {"product": self.product}
        if self.model is not None:
            out["model"] = self.model
        out["version"] = self.version
        if self.display_version is not None:
            out["displayVersion"] = self.display_version
        if self.channel is not None:
            out["channel"] = self.channel
        out.update(self.extra)
        out["isRequired"] = self.is_required
        if self.files:
            out["files"] = dict(self.files)
        if self.file is not None:
            out["file"] = self.file
        if self.download_url is not None:
            out["downloadUrl"] = self.download_url
        if self.release_date is not None:
            out["releaseDate"] = self.release_date
        if self.release_notes is not None:
            out["releaseNotes"] = self.release_notes.to_raw()
        return out


def _empty_updates() -> tuple[ReleaseEntry, ...]:
    return ()


@dataclass(frozen=True, slots=True)
class ManifestDocument:
    """Canonical in-memory manifest: an unordered set of release entries.

    `extra` holds any other top-level keys of the persisted object so that a
    read-modify-write cycle doesn't drop them.
    """

    updates: tuple[ReleaseEntry, ...] = field(default_factory=_empty_updates)
    extra: StrDict = field(default_factory=_empty_extra)

    def with_updates(self, updates: tuple[ReleaseEntry, ...]) -> ManifestDocument:
        return ManifestDocument(updates=updates, extra=dict(self.extra))

    def to_dict(self) -> StrDict:
        out: StrDict = dict(self.extra)
        out["updates"] = [e.to_dict() for e in self.updates]
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"


# -----------------------------------------------------------------------------
# Raw shapes
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LegacyList:
    items: list[object]


@dataclass(frozen=True, slots=True)
class ManifestObject:
    data: StrDict


@dataclass(frozen=True, slots=True)
class Unrecognized:
    value: object


type RawManifest = LegacyList | ManifestObject | Unrecognized


def classify(value: object) -> RawManifest:
    items = as_obj_list(value)
    if items is not None:
        return LegacyList(items)
    data = as_str_dict(value)
    if data is not None:
        return ManifestObject(data)
    return Unrecognized(value)


def _entries(items: list[object]) -> tuple[ReleaseEntry, ...]:
    out: list[ReleaseEntry] = []
    for item in items:
        data = as_str_dict(item)
        if data is None:
            continue
        out.append(ReleaseEntry.from_dict(data))
    return tuple(out)


def normalize(raw: RawManifest) -> ManifestDocument:
    """Turn any raw shape into a ManifestDocument. Never raises."""
    match raw:
        case LegacyList(items):
            return ManifestDocument(updates=_entries(items))
        case ManifestObject(data):
            items = as_obj_list(data.get("updates")) or []
            extra = {k: v for k, v in data.items() if k != "updates"}
            return ManifestDocument(updates=_entries(items), extra=extra)
        case Unrecognized():
            return ManifestDocument()


def parse_manifest(data: bytes) -> Result[ManifestDocument, UpdateError]:
    """Decode manifest bytes.

    Only undecodable input is an error. Valid JSON of the wrong shape is
    normalized to an empty document.
    """
    try:
        value: object = json.loads(data.decode("utf-8-sig"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Err(UpdateError(kind="malformed", message=f"manifest is not valid JSON: {e}"))
    return Ok(normalize(classify(value)))


# -----------------------------------------------------------------------------
# Artifacts
# -----------------------------------------------------------------------------


def normalize_platform(platform: str | None) -> str:
    p = (platform or "").strip().lower()
    if p == "darwin":
        return "macos"
    return p


def _desktop_default_name(entry: ReleaseEntry, platform: str) -> str:
    stem = f"{DESKTOP_ARTIFACT_STEM}-{entry.version}"
    match platform:
        case "windows":
            return f"{stem}-Setup.exe"
        case "macos":
            return f"{stem}.pkg"
        case "linux":
            return f"{stem}.AppImage"
        case _:
            return f"{stem}.zip"


def _instrument_default_name(entry: ReleaseEntry) -> str:
    if entry.model:
        return f"essentials-{entry.model.lower()}-update.hunterlab"
    return "essentials-update.hunterlab"


def artifact_name(entry: ReleaseEntry, platform: str | None = None) -> str | None:
    """Object name of the downloadable artifact for `platform`.

    Desktop entries pick the platform file, then the `default` file, then a
    conventional name. Instrument and recovery entries carry a single file.
    """
    key = normalize_platform(platform)
    match entry.product:
        case "desktop":
            return first_available(
                [
                    lambda: entry.files.get(key) if key else None,
                    lambda: entry.files.get("default"),
                    lambda: _desktop_default_name(entry, key),
                ]
            )
        case "instrument":
            return entry.file or _instrument_default_name(entry)
        case "recovery":
            return entry.file or RECOVERY_DEFAULT_ARTIFACT
        case _:
            return entry.file
