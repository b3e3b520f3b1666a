"""Publish and delete transforms over a ManifestDocument.

Both are pure with respect to the document: they take one and return a new
one. Loading and saving is the caller's job (see UpdateService).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from relman.core.result import Err, Ok, Result
from relman.manifest.errors import UpdateError
from relman.manifest.model import ManifestDocument, ReleaseEntry
from relman.manifest.selector import ReleaseFilters
from relman.output.console import ConsoleProtocol
from relman.storage.store import ObjectStore, StoreError

__all__ = [
    "Candidate",
    "ChooseCallback",
    "DeleteOutcome",
    "delete_candidates",
    "delete_interactive",
    "publish",
]


def publish(document: ManifestDocument, entry: ReleaseEntry) -> ManifestDocument:
    """Upsert `entry` by dedup key; the new entry replaces any older one.

    Entries with other keys keep their relative order. Legacy duplicates of
    unrelated keys are collapsed too, keeping the last of each.
    """
    combined = [*document.updates, entry]
    last_position: dict[str, int] = {}
    for i, e in enumerate(combined):
        last_position[e.key] = i
    kept = tuple(e for i, e in enumerate(combined) if last_position[e.key] == i)
    return document.with_updates(kept)


@dataclass(frozen=True, slots=True)
class Candidate:
    """A deletable entry as presented to the operator.

    `index` is the 1-based number shown; `position` is the entry's index in
    the unfiltered document.
    """

    index: int
    position: int
    entry: ReleaseEntry


ChooseCallback = Callable[[Sequence[Candidate]], int | None]


@dataclass(frozen=True, slots=True)
class DeleteOutcome:
    document: ManifestDocument
    removed: ReleaseEntry | None = None
    deleted_objects: tuple[str, ...] = ()
    missing_objects: tuple[str, ...] = ()
    failed_objects: tuple[StoreError, ...] = ()

    @property
    def declined(self) -> bool:
        return self.removed is None


def delete_candidates(document: ManifestDocument, filters: ReleaseFilters) -> tuple[Candidate, ...]:
    """Entries matching `filters` in document order, numbered from 1.

    Duplicates of the same key are listed separately so an operator can pick
    the exact one to remove.
    """
    out: list[Candidate] = []
    for position, entry in enumerate(document.updates):
        if not filters.matches(entry):
            continue
        if filters.version is not None and entry.version != filters.version:
            continue
        out.append(Candidate(index=len(out) + 1, position=position, entry=entry))
    return tuple(out)


def _delete_objects(
    names: tuple[str, ...],
    store: ObjectStore | None,
    console: ConsoleProtocol,
) -> tuple[tuple[str, ...], tuple[str, ...], tuple[StoreError, ...]]:
    deleted: list[str] = []
    missing: list[str] = []
    failed: list[StoreError] = []
    if store is None:
        if names:
            console.warning("no object store configured; referenced files were left in place")
        return (), (), ()

    for name in names:
        result = store.delete(name)
        if isinstance(result, Ok):
            deleted.append(name)
            console.print(f"deleted {name}")
            continue
        if result.error.not_found:
            missing.append(name)
            console.print(f"already gone: {name}")
            continue
        failed.append(result.error)
        console.warning(f"failed to delete {name}: {result.error}")
    return tuple(deleted), tuple(missing), tuple(failed)


def delete_interactive(
    document: ManifestDocument,
    filters: ReleaseFilters,
    choose: ChooseCallback,
    *,
    store: ObjectStore | None,
    console: ConsoleProtocol,
) -> Result[DeleteOutcome, UpdateError]:
    """Remove one entry picked by `choose` and the objects it references.

    Object deletes are best effort: failures are reported in the outcome and
    never stop the entry from being removed. A `choose` returning None
    leaves everything untouched.
    """
    candidates = delete_candidates(document, filters)
    if not candidates:
        return Err(
            UpdateError(
                kind="no_match",
                message="nothing to delete",
                hint=f"no {filters.product} entries match the given filters",
            )
        )

    picked = choose(candidates)
    if picked is None:
        return Ok(DeleteOutcome(document=document))
    if not 1 <= picked <= len(candidates):
        return Err(
            UpdateError(
                kind="bad_request",
                message=f"selection out of range: {picked}",
                hint=f"choose between 1 and {len(candidates)}",
            )
        )

    chosen = candidates[picked - 1]
    deleted, missing, failed = _delete_objects(chosen.entry.referenced_objects(), store, console)

    remaining = tuple(e for i, e in enumerate(document.updates) if i != chosen.position)
    return Ok(
        DeleteOutcome(
            document=document.with_updates(remaining),
            removed=chosen.entry,
            deleted_objects=deleted,
            missing_objects=missing,
            failed_objects=failed,
        )
    )
