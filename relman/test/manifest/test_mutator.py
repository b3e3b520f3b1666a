"""Tests for publish (upsert) and interactive delete."""

from __future__ import annotations

from collections.abc import Sequence

from relman.core.result import Err, Ok
from relman.manifest.model import ManifestDocument, NotesRef, ReleaseEntry
from relman.manifest.mutator import Candidate, delete_candidates, delete_interactive, publish
from relman.manifest.selector import ReleaseFilters
from relman.output.console import MockConsole
from relman.storage.store import MemoryObjectStore


def _agera(version: str, file: str = "a.bin", **kwargs: object) -> ReleaseEntry:
    return ReleaseEntry(
        product="instrument",
        model="agera",
        version=version,
        file=file,
        **kwargs,  # type: ignore[arg-type]
    )


def _pick(index: int | None):  # noqa: ANN202
    seen: list[Sequence[Candidate]] = []

    def choose(candidates: Sequence[Candidate]) -> int | None:
        seen.append(candidates)
        return index

    return choose, seen


class TestPublish:
    def test_adds_to_empty_document(self) -> None:
        entry = _agera("1.0.0")
        doc = publish(ManifestDocument(), entry)
        assert doc.updates == (entry,)

    def test_replaces_same_key_in_place_of_old(self) -> None:
        old = _agera("1.0.0", file="old.bin")
        other = ReleaseEntry(product="desktop", version="1.0.0", files={"windows": "w.exe"})
        new = _agera("1.0.0", file="new.bin")
        doc = publish(ManifestDocument(updates=(old, other)), new)
        assert doc.updates == (other, new)
        assert [e.key for e in doc.updates].count("instrument:agera:1.0.0") == 1

    def test_different_model_is_different_key(self) -> None:
        vista = ReleaseEntry(product="instrument", model="vista", version="1.0.0", file="v.bin")
        doc = publish(ManifestDocument(updates=(vista,)), _agera("1.0.0"))
        assert len(doc.updates) == 2

    def test_collapses_legacy_duplicates(self) -> None:
        a1 = _agera("0.9", file="first.bin")
        a2 = _agera("0.9", file="second.bin")
        doc = publish(ManifestDocument(updates=(a1, a2)), _agera("1.0"))
        assert [e.file for e in doc.updates] == ["second.bin", "a.bin"]

    def test_keeps_document_extra(self) -> None:
        doc = publish(ManifestDocument(extra={"schema": 2}), _agera("1.0"))
        assert doc.extra == {"schema": 2}


class TestDelete:
    def _document(self) -> ManifestDocument:
        return ManifestDocument(
            updates=(
                _agera("1.0.0", release_notes=NotesRef(blob="instrument-1.0.0-notes.md")),
                ReleaseEntry(product="desktop", version="1.0.0", files={"windows": "w.exe"}),
                _agera("1.1.0", file="b.bin"),
            )
        )

    def test_candidates_are_numbered_in_document_order(self) -> None:
        candidates = delete_candidates(self._document(), ReleaseFilters(product="instrument"))
        assert [(c.index, c.position, c.entry.version) for c in candidates] == [
            (1, 0, "1.0.0"),
            (2, 2, "1.1.0"),
        ]

    def test_version_filter(self) -> None:
        filters = ReleaseFilters(product="instrument", version="1.1.0")
        assert [c.entry.version for c in delete_candidates(self._document(), filters)] == ["1.1.0"]

    def test_removes_entry_and_its_objects(self) -> None:
        store = MemoryObjectStore()
        store.set_text("a.bin", "fw")
        store.set_text("instrument-1.0.0-notes.md", "notes")
        choose, seen = _pick(1)

        result = delete_interactive(
            self._document(),
            ReleaseFilters(product="instrument", model="agera"),
            choose,
            store=store,
            console=MockConsole(),
        )

        assert isinstance(result, Ok)
        outcome = result.value
        assert len(seen) == 1 and len(seen[0]) == 2
        assert outcome.removed is not None and outcome.removed.version == "1.0.0"
        assert [e.version for e in outcome.document.updates] == ["1.0.0", "1.1.0"]
        assert outcome.document.updates[0].product == "desktop"
        assert outcome.deleted_objects == ("a.bin", "instrument-1.0.0-notes.md")
        assert store.objects == {}

    def test_failed_object_delete_does_not_block(self) -> None:
        store = MemoryObjectStore()
        store.set_text("instrument-1.0.0-notes.md", "notes")
        store.fail("delete", "a.bin", status=403, message="AuthorizationFailure")
        console = MockConsole()
        choose, _ = _pick(1)

        result = delete_interactive(
            self._document(),
            ReleaseFilters(product="instrument"),
            choose,
            store=store,
            console=console,
        )

        assert isinstance(result, Ok)
        outcome = result.value
        assert store.calls_for("delete") == ["a.bin", "instrument-1.0.0-notes.md"]
        assert [f.name for f in outcome.failed_objects] == ["a.bin"]
        assert outcome.deleted_objects == ("instrument-1.0.0-notes.md",)
        assert len(outcome.document.updates) == 2
        assert console.has_warning()

    def test_missing_objects_are_reported_separately(self) -> None:
        store = MemoryObjectStore()
        choose, _ = _pick(2)
        result = delete_interactive(
            self._document(),
            ReleaseFilters(product="instrument"),
            choose,
            store=store,
            console=MockConsole(),
        )
        assert isinstance(result, Ok)
        assert result.value.missing_objects == ("b.bin",)
        assert result.value.failed_objects == ()

    def test_declined(self) -> None:
        store = MemoryObjectStore()
        document = self._document()
        choose, _ = _pick(None)
        result = delete_interactive(
            document, ReleaseFilters(product="instrument"), choose, store=store, console=MockConsole()
        )
        assert isinstance(result, Ok)
        assert result.value.declined
        assert result.value.document == document
        assert store.calls == []

    def test_no_match(self) -> None:
        choose, seen = _pick(1)
        result = delete_interactive(
            self._document(),
            ReleaseFilters(product="recovery"),
            choose,
            store=None,
            console=MockConsole(),
        )
        assert isinstance(result, Err)
        assert result.error.kind == "no_match"
        assert seen == []

    def test_out_of_range(self) -> None:
        choose, _ = _pick(5)
        result = delete_interactive(
            self._document(),
            ReleaseFilters(product="instrument"),
            choose,
            store=None,
            console=MockConsole(),
        )
        assert isinstance(result, Err)
        assert result.error.kind == "bad_request"

    def test_duplicates_remove_only_the_chosen_position(self) -> None:
        twin = _agera("1.0.0", file="twin.bin")
        document = ManifestDocument(updates=(_agera("1.0.0"), twin))
        choose, _ = _pick(2)
        result = delete_interactive(
            document, ReleaseFilters(product="instrument"), choose, store=None, console=MockConsole()
        )
        assert isinstance(result, Ok)
        assert [e.file for e in result.value.document.updates] == ["a.bin"]
