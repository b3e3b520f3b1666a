"""Loading and persisting the manifest document."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from relman.core.config import StorageConfig
from relman.core.result import Err, Ok, Result
from relman.manifest.errors import UpdateError
from relman.manifest.model import ManifestDocument, parse_manifest
from relman.output.console import ConsoleProtocol
from relman.storage.store import ObjectStore

__all__ = ["ManifestStore"]

MANIFEST_CONTENT_TYPE = "application/json"


class ManifestStore:
    """Reads the manifest from the object store, falling back to a local copy.

    `load` never raises: fetch and parse failures are reported as warnings
    and the next source is tried. `save` overwrites whatever is there; there
    is no version check, so two concurrent publishers race and the later
    write wins.
    """

    def __init__(
        self,
        *,
        storage: StorageConfig,
        store: ObjectStore | None,
        console: ConsoleProtocol,
    ) -> None:
        self._storage = storage
        self._store = store
        self._console = console

    @property
    def name(self) -> str:
        return self._storage.manifest_name

    def load(self) -> Result[ManifestDocument, UpdateError]:
        remote = self._load_remote()
        if remote is not None:
            return Ok(remote)
        local = self._load_local()
        if local is not None:
            return Ok(local)
        return Err(
            UpdateError(
                kind="not_found",
                message="Manifest not found",
                hint=self._describe_sources(),
            )
        )

    def load_for_update(self) -> Result[ManifestDocument, UpdateError]:
        """Load the document a publish or delete will write back.

        A missing or unparseable manifest starts a new empty document. An
        unreachable store is an error here, unlike in `load`: writing back
        an empty document over a manifest we merely failed to read would
        drop every release.
        """
        if self._store is None:
            local = self._load_local()
            if local is not None:
                return Ok(local)
            self._console.info(f"no existing manifest, creating {self.name}")
            return Ok(ManifestDocument())

        fetched = self._store.get(self.name)
        if isinstance(fetched, Err):
            if fetched.error.not_found:
                self._console.info(f"no existing manifest, creating {self.name}")
                return Ok(ManifestDocument())
            return Err(
                UpdateError(
                    kind="upstream_unavailable",
                    message=f"failed to read {self.name} before updating it",
                    hint=str(fetched.error),
                )
            )

        parsed = parse_manifest(fetched.value)
        if isinstance(parsed, Err):
            self._console.warning(f"{parsed.error.message}; replacing with a new document")
            return Ok(ManifestDocument())
        return Ok(parsed.value)

    def save(self, document: ManifestDocument) -> Result[None, UpdateError]:
        payload = document.to_json()
        if self._store is not None:
            put = self._store.put(self.name, payload.encode("utf-8"), MANIFEST_CONTENT_TYPE)
            if isinstance(put, Err):
                return Err(
                    UpdateError(
                        kind="upstream_unavailable",
                        message=f"failed to upload {self.name}",
                        hint=str(put.error),
                    )
                )
            return Ok(None)

        path = self._storage.local_manifest_path
        try:
            _replace_file(path, payload)
        except OSError as e:
            return Err(
                UpdateError(
                    kind="upstream_unavailable",
                    message=f"failed to write manifest: {e}",
                    hint=str(path),
                )
            )
        return Ok(None)

    def _load_remote(self) -> ManifestDocument | None:
        if self._store is None:
            return None
        fetched = self._store.get(self.name)
        if isinstance(fetched, Err):
            self._console.warning(f"manifest not available from store: {fetched.error}")
            return None
        parsed = parse_manifest(fetched.value)
        if isinstance(parsed, Err):
            self._console.warning(f"{parsed.error.message} ({self._store.object_url(self.name)})")
            return None
        return parsed.value

    def _load_local(self) -> ManifestDocument | None:
        path = self._storage.local_manifest_path
        if not path.is_file():
            return None
        try:
            data = path.read_bytes()
        except OSError as e:
            self._console.warning(f"failed to read local manifest: {e}")
            return None
        parsed = parse_manifest(data)
        if isinstance(parsed, Err):
            self._console.warning(f"{parsed.error.message} ({path})")
            return None
        return parsed.value

    def _describe_sources(self) -> str:
        sources: list[str] = []
        if self._store is not None:
            sources.append(self._store.object_url(self.name))
        sources.append(str(self._storage.local_manifest_path))
        return "looked in: " + ", ".join(sources)


def _replace_file(path: Path, content: str) -> None:
    """Write via a sibling temp file so readers never see a partial manifest."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)
