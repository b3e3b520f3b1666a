"""Choosing the release a client should be offered."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from functools import cmp_to_key, partial

from relman.core.result import Err, Ok, Result
from relman.manifest.errors import UpdateError
from relman.manifest.model import (
    CHANNELS,
    DEFAULT_CHANNEL,
    PRODUCTS,
    ReleaseEntry,
    artifact_name,
)
from relman.manifest.versions import is_newer

__all__ = [
    "Applicable",
    "Applicability",
    "NotApplicable",
    "ReleaseFilters",
    "check_applicability",
    "filter_entries",
    "rank",
    "select",
]


@dataclass(frozen=True, slots=True)
class ReleaseFilters:
    """Which slice of the manifest a request is about.

    `model` only narrows instrument entries; for other products it is
    ignored. `version` is used by release-notes lookups and deletes.
    """

    product: str
    model: str | None = None
    channel: str = DEFAULT_CHANNEL
    version: str | None = None

    def validate(self) -> Result[ReleaseFilters, UpdateError]:
        product = (self.product or "").strip()
        if not product:
            return Err(
                UpdateError(
                    kind="bad_request",
                    message="Missing required parameter: product",
                    hint="One of: " + ", ".join(PRODUCTS),
                )
            )
        if product not in PRODUCTS:
            return Err(
                UpdateError(
                    kind="bad_request",
                    message=f"unknown product: {product!r}",
                    hint="One of: " + ", ".join(PRODUCTS),
                )
            )
        channel = (self.channel or DEFAULT_CHANNEL).strip()
        if channel not in CHANNELS:
            return Err(
                UpdateError(
                    kind="bad_request",
                    message=f"unknown channel: {channel!r}",
                    hint="One of: " + ", ".join(CHANNELS),
                )
            )
        model = (self.model or "").strip() or None
        version = (self.version or "").strip() or None
        return Ok(ReleaseFilters(product=product, model=model, channel=channel, version=version))

    def matches(self, entry: ReleaseEntry) -> bool:
        if entry.product != self.product:
            return False
        if self.model and self.product == "instrument" and entry.model != self.model:
            return False
        if entry.effective_channel != self.channel:
            return False
        return True


def filter_entries(entries: Iterable[ReleaseEntry], filters: ReleaseFilters) -> list[ReleaseEntry]:
    """Entries matching product, model and channel, in document order.

    The `version` filter is not applied here; callers decide whether a
    version mismatch means "fall back" or "nothing matched".
    """
    return [e for e in entries if filters.matches(e)]


def _released_at(entry: ReleaseEntry, undated_as: datetime | None) -> datetime:
    if undated_as is not None and not entry.release_date:
        return undated_as
    return entry.released_at


def _compare(a: ReleaseEntry, b: ReleaseEntry, undated_as: datetime | None = None) -> int:
    ta = _released_at(a, undated_as)
    tb = _released_at(b, undated_as)
    if ta != tb:
        return -1 if ta > tb else 1
    if is_newer(a.version, b.version):
        return -1
    if is_newer(b.version, a.version):
        return 1
    return 0


def rank(
    entries: Iterable[ReleaseEntry],
    *,
    undated_as: datetime | None = None,
) -> list[ReleaseEntry]:
    """Newest first: by release date, then by version.

    Entries without a release date rank as the oldest, or as `undated_as`
    when a listing shows them with that date.
    """
    return sorted(entries, key=cmp_to_key(partial(_compare, undated_as=undated_as)))


def select(entries: Iterable[ReleaseEntry], filters: ReleaseFilters) -> ReleaseEntry | None:
    candidates = filter_entries(entries, filters)
    if not candidates:
        return None
    return rank(candidates)[0]


@dataclass(frozen=True, slots=True)
class NotApplicable:
    """The client already runs the selected release (or newer)."""

    entry: ReleaseEntry


@dataclass(frozen=True, slots=True)
class Applicable:
    entry: ReleaseEntry
    is_required: bool
    artifact: str | None


type Applicability = Applicable | NotApplicable


def check_applicability(
    entry: ReleaseEntry,
    current_version: str | None,
    scenario: str | None = None,
    platform: str | None = None,
) -> Applicability:
    """Decide whether `entry` should be offered to a client on `current_version`.

    Scenarios override the decision for testing clients: `no_update` never
    offers, `forced` offers as a required update when a newer release
    exists. `error` has to be turned into a failure before getting here.
    """
    if scenario == "error":
        raise ValueError("the 'error' scenario must be handled before applicability")
    if scenario == "no_update":
        return NotApplicable(entry)
    if not is_newer(entry.version, current_version):
        return NotApplicable(entry)
    return Applicable(
        entry=entry,
        is_required=entry.is_required or scenario == "forced",
        artifact=artifact_name(entry, platform),
    )
