"""Tests for UpdateService queries and mutations."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from relman.core.clock import FixedClock
from relman.core.config import Config, ServerConfig, StorageConfig
from relman.core.result import Err, Ok
from relman.manifest.model import NotesRef, ReleaseEntry
from relman.manifest.mutator import Candidate
from relman.manifest.selector import ReleaseFilters
from relman.output.console import MockConsole
from relman.services.updates import UpdateService, validate_entry
from relman.storage.store import MemoryObjectStore

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
CONTAINER = "https://devstore.blob.core.windows.net/updates"

MANIFEST = {
    "updates": [
        {
            "product": "desktop",
            "version": "2025.3.9",
            "displayVersion": "2025.3.0-rc9",
            "releaseDate": "2025-03-01",
            "isRequired": False,
            "files": {"windows": "Essentials Desktop 2025.3.9.exe", "macos": "ed.pkg"},
            "releaseNotes": {"inline": True, "blob": "desktop-2025.3.9-notes.md"},
        },
        {
            "product": "desktop",
            "version": "2025.2.0",
            "releaseDate": "2025-02-01",
            "files": {"windows": "old.exe"},
            "releaseNotes": {"content": "old notes"},
        },
        {
            "product": "desktop",
            "version": "2025.4.0",
            "channel": "preview",
            "releaseDate": "2025-04-01",
            "files": {"windows": "preview.exe"},
        },
        {
            "product": "instrument",
            "model": "agera",
            "version": "1.1.0",
            "releaseDate": "2025-01-10",
            "file": "agera-1.1.0.bin",
        },
    ]
}


def _service(
    tmp_path: Path,
    *,
    manifest: object = MANIFEST,
    scenario: str | None = None,
    store: MemoryObjectStore | None = None,
) -> tuple[UpdateService, MemoryObjectStore, MockConsole]:
    store = store or MemoryObjectStore()
    if manifest is not None:
        store.set_text("manifest.json", json.dumps(manifest), "application/json")
    store.set_text("desktop-2025.3.9-notes.md", "# 2025.3\n- faster sync")
    console = MockConsole()
    config = Config(
        storage=StorageConfig(account="devstore", local_dir=str(tmp_path)),
        server=ServerConfig(base_url="https://updates.example.com", scenario=scenario),
    )
    service = UpdateService(config=config, store=store, console=console, clock=FixedClock(NOW))
    return service, store, console


class TestCheckUpdate:
    def test_has_update(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.check_update("desktop", "2025.2.0", platform="windows")
        assert isinstance(result, Ok)
        payload = result.value.to_dict()
        assert payload["hasUpdate"] is True
        info = payload["updateInfo"]
        assert info["version"] == "2025.3.9"
        assert info["displayVersion"] == "2025.3.0-rc9"
        assert info["releaseNotes"] == "# 2025.3\n- faster sync"
        assert info["releaseNotesUrl"] == (
            "https://updates.example.com/api/release-notes?product=desktop&version=2025.3.9"
        )
        assert info["isRequired"] is False
        assert info["channel"] == "production"
        assert info["downloadUrl"].startswith(f"{CONTAINER}/Essentials%20Desktop%202025.3.9.exe?sp=r")

    def test_download_url_follows_platform(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.check_update("desktop", "2025.2.0", platform="macos")
        assert isinstance(result, Ok)
        info = result.value.to_dict()["updateInfo"]
        assert info["downloadUrl"].startswith(f"{CONTAINER}/ed.pkg?")

    def test_up_to_date(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.check_update("desktop", "2025.3.9")
        assert isinstance(result, Ok)
        assert result.value.to_dict() == {
            "hasUpdate": False,
            "currentVersion": "2025.3.9",
            "message": "You are running the latest version",
        }

    def test_preview_channel(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.check_update("desktop", "2025.3.9", channel="preview", platform="windows")
        assert isinstance(result, Ok)
        info = result.value.to_dict()["updateInfo"]
        assert info["version"] == "2025.4.0"
        assert info["channel"] == "preview"
        assert info["releaseNotes"] is None
        assert info["releaseNotesUrl"].endswith("&channel=preview")

    def test_instrument_model(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.check_update("instrument", "1.0.0", model="agera")
        assert isinstance(result, Ok)
        info = result.value.to_dict()["updateInfo"]
        assert info["model"] == "agera"
        assert info["downloadUrl"].startswith(f"{CONTAINER}/agera-1.1.0.bin?")
        assert "model=agera" in info["releaseNotesUrl"]

    def test_unknown_model_has_no_update(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.check_update("instrument", "1.0.0", model="vista")
        assert isinstance(result, Ok)
        assert result.value.message == "No updates configured"

    def test_no_update_scenario(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.check_update("desktop", "1.0.0", scenario="no_update")
        assert isinstance(result, Ok)
        assert result.value.has_update is False

    def test_forced_scenario(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path, scenario="forced")
        result = service.check_update("desktop", "1.0.0", scenario="has_update")
        assert isinstance(result, Ok)
        assert result.value.to_dict()["updateInfo"]["isRequired"] is True

    def test_error_scenario(self, tmp_path: Path) -> None:
        service, store, _ = _service(tmp_path)
        result = service.check_update("desktop", "1.0.0", scenario="error")
        assert isinstance(result, Err)
        assert result.error.kind == "upstream_unavailable"
        assert store.calls_for("get") == []

    def test_missing_product(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.check_update("", "1.0.0")
        assert isinstance(result, Err)
        assert result.error.kind == "bad_request"

    def test_no_manifest(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path, manifest=None)
        result = service.check_update("desktop", "1.0.0")
        assert isinstance(result, Ok)
        assert result.value.to_dict() == {
            "hasUpdate": False,
            "currentVersion": "1.0.0",
            "message": "No manifest configured",
        }


class TestListReleases:
    def test_newest_first(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.list_releases("desktop")
        assert isinstance(result, Ok)
        payload = result.value.to_dict()
        assert payload["product"] == "desktop"
        assert payload["channel"] == "production"
        releases = payload["releases"]
        assert [r["version"] for r in releases] == ["2025.3.0-rc9", "2025.2.0"]
        assert releases[0]["title"] == "desktop 2025.3.0-rc9"
        assert releases[0]["notesUrl"] == (
            "https://updates.example.com/api/release-notes"
            "?product=desktop&version=2025.3.9&channel=production"
        )

    def test_undated_entry_listed_as_now(self, tmp_path: Path) -> None:
        manifest = {
            "updates": [
                {"product": "recovery", "version": "1.0.0", "releaseDate": "2025-01-01", "file": "r1.img"},
                {"product": "recovery", "version": "2.0.0", "file": "r2.img"},
            ]
        }
        service, _, _ = _service(tmp_path, manifest=manifest)
        result = service.list_releases("recovery")
        assert isinstance(result, Ok)
        releases = result.value.to_dict()["releases"]
        assert [r["version"] for r in releases] == ["2.0.0", "1.0.0"]
        assert [r["date"] for r in releases] == [NOW.isoformat(), "2025-01-01"]

    def test_missing_manifest(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path, manifest=None)
        result = service.list_releases("desktop")
        assert isinstance(result, Err)
        assert result.error.kind == "not_found"

    def test_invalid_channel(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.list_releases("desktop", channel="nightly")
        assert isinstance(result, Err)
        assert result.error.kind == "bad_request"


class TestReleaseNotes:
    def test_exact_version_inline_content(self, tmp_path: Path) -> None:
        service, store, _ = _service(tmp_path)
        result = service.get_release_notes("desktop", version="2025.2.0")
        assert isinstance(result, Ok)
        payload = result.value.to_dict()
        assert payload["content"] == "old notes"
        assert payload["url"] is None
        assert payload["expiresAt"] == "2025-03-01T12:15:00Z"
        assert store.calls_for("sign") == []

    def test_unknown_version_falls_back_to_latest(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.get_release_notes("desktop", version="9.9.9")
        assert isinstance(result, Ok)
        assert result.value.version == "2025.3.0-rc9"
        assert result.value.content == "# 2025.3\n- faster sync"
        assert result.value.url is not None

    def test_no_notes_configured(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.get_release_notes("instrument", model="agera")
        assert isinstance(result, Err)
        assert result.error.kind == "not_found"

    def test_no_entries(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        result = service.get_release_notes("recovery")
        assert isinstance(result, Err)
        assert result.error.kind == "not_found"


def test_health_reports_storage(tmp_path: Path) -> None:
    service, _, _ = _service(tmp_path)
    health = service.health()
    assert health["status"] == "ok"
    assert health["storage"] == {"type": "azure-blob", "account": "devstore", "container": "updates"}
    assert health["signing"] == "none"
    assert "forced" in health["scenarios"]


class TestPublishRelease:
    def test_upserts_and_saves(self, tmp_path: Path) -> None:
        service, store, _ = _service(tmp_path)
        entry = ReleaseEntry(
            product="instrument",
            model="agera",
            version="1.1.0",
            file="agera-1.1.0-r2.bin",
            release_notes=NotesRef(blob="instrument-1.1.0-notes.md"),
        )
        result = service.publish_release(entry)
        assert isinstance(result, Ok)
        saved = json.loads(store.text("manifest.json"))["updates"]
        agera = [u for u in saved if u.get("model") == "agera"]
        assert len(agera) == 1
        assert agera[0]["file"] == "agera-1.1.0-r2.bin"
        assert len(saved) == 4

    def test_first_publish_creates_manifest(self, tmp_path: Path) -> None:
        service, store, _ = _service(tmp_path, manifest=None)
        entry = ReleaseEntry(product="recovery", version="1.0.0", file="r.bin")
        assert isinstance(service.publish_release(entry), Ok)
        assert json.loads(store.text("manifest.json"))["updates"][0]["product"] == "recovery"

    def test_refuses_when_manifest_unreadable(self, tmp_path: Path) -> None:
        store = MemoryObjectStore()
        store.fail("get", "manifest.json", status=500)
        service, _, _ = _service(tmp_path, manifest=None, store=store)
        result = service.publish_release(ReleaseEntry(product="recovery", version="1", file="r.bin"))
        assert isinstance(result, Err)
        assert store.calls_for("put") == []

    def test_rejects_invalid_entry(self, tmp_path: Path) -> None:
        service, store, _ = _service(tmp_path)
        result = service.publish_release(ReleaseEntry(product="desktop", version="1.0"))
        assert isinstance(result, Err)
        assert result.error.kind == "bad_request"
        assert store.calls_for("put") == []


class TestDeleteRelease:
    def test_removes_and_saves(self, tmp_path: Path) -> None:
        service, store, _ = _service(tmp_path)
        store.set_text("old.exe", "bin")

        def choose(candidates: Sequence[Candidate]) -> int | None:
            return next(c.index for c in candidates if c.entry.version == "2025.2.0")

        result = service.delete_release(ReleaseFilters(product="desktop"), choose)

        assert isinstance(result, Ok)
        assert result.value.deleted_objects == ("old.exe",)
        saved = json.loads(store.text("manifest.json"))["updates"]
        assert [u["version"] for u in saved] == ["2025.3.9", "2025.4.0", "1.1.0"]

    def test_declined_does_not_save(self, tmp_path: Path) -> None:
        service, store, _ = _service(tmp_path)
        result = service.delete_release(ReleaseFilters(product="desktop"), lambda _: None)
        assert isinstance(result, Ok)
        assert result.value.declined
        assert store.calls_for("put") == []
        assert store.calls_for("delete") == []


class TestValidateEntry:
    def test_model_only_for_instrument(self) -> None:
        entry = ReleaseEntry(product="recovery", version="1", model="agera", file="r.bin")
        assert isinstance(validate_entry(entry), Err)

    def test_unknown_model(self) -> None:
        entry = ReleaseEntry(product="instrument", version="1", model="zeta", file="z.bin")
        assert isinstance(validate_entry(entry), Err)

    def test_single_file_products_need_file(self) -> None:
        assert isinstance(validate_entry(ReleaseEntry(product="recovery", version="1")), Err)
        ok = ReleaseEntry(product="instrument", version="1", model="vista", file="v.bin")
        assert validate_entry(ok) == Ok(ok)


class TestEndToEnd:
    def test_single_desktop_release(self, tmp_path: Path) -> None:
        manifest = {
            "updates": [
                {
                    "product": "desktop",
                    "version": "2.3.0",
                    "releaseDate": "2025-01-01",
                    "files": {"windows": "setup.exe"},
                }
            ]
        }
        service, _, _ = _service(tmp_path, manifest=manifest)

        older = service.check_update("desktop", "2.2.0", channel="production")
        assert isinstance(older, Ok)
        assert older.value.update_info is not None
        assert older.value.update_info.version == "2.3.0"

        current = service.check_update("desktop", "2.3.0", channel="production")
        assert isinstance(current, Ok)
        assert current.value.has_update is False

    def test_model_scoping(self, tmp_path: Path) -> None:
        manifest = {
            "updates": [
                {"product": "instrument", "model": "agera", "version": "1.0.0", "file": "agera.bin"},
                {"product": "instrument", "model": "colorflex", "version": "1.0.0", "file": "cf.bin"},
            ]
        }
        service, _, _ = _service(tmp_path, manifest=manifest)

        check = service.check_update("instrument", "0.9.0", model="colorflex")
        assert isinstance(check, Ok)
        assert check.value.update_info is not None
        assert check.value.update_info.model == "colorflex"

        listing = service.list_releases("instrument", model="colorflex")
        assert isinstance(listing, Ok)
        assert [r.model for r in listing.value.releases] == ["colorflex"]

    def test_republish_same_key(self, tmp_path: Path) -> None:
        service, store, _ = _service(tmp_path, manifest=None)
        first = ReleaseEntry(product="instrument", model="agera", version="1.0.0", file="a.bin")
        second = ReleaseEntry(product="instrument", model="agera", version="1.0.0", file="b.bin")

        assert isinstance(service.publish_release(first), Ok)
        result = service.publish_release(second)

        assert isinstance(result, Ok)
        assert [e.file for e in result.value.updates] == ["b.bin"]
        saved = json.loads(store.text("manifest.json"))["updates"]
        assert [u["file"] for u in saved] == ["b.bin"]
