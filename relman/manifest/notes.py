"""Release notes resolution.

Notes can be stored three ways on an entry, tried in this order:
1. literal content in the manifest (no I/O),
2. an object in the store, returned as a signed link and, when the entry
   asks for inline delivery, also as downloaded text,
3. an external URL, re-signed if it points into our own container.

Each resolution performs at most one download. A failed download still
yields the link.
"""

from __future__ import annotations

from dataclasses import dataclass

from relman.core.fallback import first_available
from relman.core.result import Err
from relman.manifest.model import NotesRef, ReleaseEntry
from relman.manifest.urls import SignedUrlIssuer
from relman.output.console import ConsoleProtocol
from relman.storage.store import ObjectStore

__all__ = ["ResolvedNotes", "ReleaseNotesResolver"]


@dataclass(frozen=True, slots=True)
class ResolvedNotes:
    content: str | None = None
    url: str | None = None


class ReleaseNotesResolver:
    def __init__(
        self,
        *,
        store: ObjectStore | None,
        issuer: SignedUrlIssuer | None,
        console: ConsoleProtocol,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._console = console

    def resolve(self, entry: ReleaseEntry) -> ResolvedNotes | None:
        ref = entry.release_notes
        if ref is None:
            return None
        return first_available(
            [
                lambda: self._from_content(ref),
                lambda: self._from_object(ref),
                lambda: self._from_url(ref),
            ]
        )

    def _from_content(self, ref: NotesRef) -> ResolvedNotes | None:
        if ref.content is None:
            return None
        return ResolvedNotes(content=ref.content)

    def _from_object(self, ref: NotesRef) -> ResolvedNotes | None:
        if ref.blob is None or self._store is None or self._issuer is None:
            return None
        url = self._issuer.issue(ref.blob).url
        if not ref.inline:
            return ResolvedNotes(url=url)

        fetched = self._store.get(ref.blob)
        if isinstance(fetched, Err):
            self._console.warning(f"failed to download release notes: {fetched.error}")
            return ResolvedNotes(url=url)
        try:
            text = fetched.value.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            self._console.warning(f"release notes {ref.blob} are not UTF-8 text: {e}")
            return ResolvedNotes(url=url)
        return ResolvedNotes(content=text, url=url)

    def _from_url(self, ref: NotesRef) -> ResolvedNotes | None:
        if ref.url is None:
            return None
        if self._issuer is not None:
            name = self._issuer.object_name_for(ref.url)
            if name is not None:
                return ResolvedNotes(url=self._issuer.issue(name).url)
        return ResolvedNotes(url=ref.url)
