"""Update service: the operations exposed to clients, websites and operators.

Each operation returns a Result whose Ok value serializes (`to_dict`) to the
JSON payloads existing clients expect.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from urllib.parse import urlencode

from relman.core.clock import Clock, SystemClock, isoformat_z
from relman.core.config import SCENARIOS, Config
from relman.core.result import Err, Ok, Result
from relman.core.structured import StrDict
from relman.manifest.errors import UpdateError
from relman.manifest.model import (
    CHANNELS,
    DEFAULT_CHANNEL,
    INSTRUMENT_MODELS,
    PRODUCTS,
    ManifestDocument,
    ReleaseEntry,
)
from relman.manifest.mutator import ChooseCallback, DeleteOutcome, delete_interactive, publish
from relman.manifest.notes import ReleaseNotesResolver
from relman.manifest.selector import (
    Applicable,
    ReleaseFilters,
    check_applicability,
    filter_entries,
    rank,
    select,
)
from relman.manifest.store import ManifestStore
from relman.manifest.urls import SignedUrlIssuer, resolve_download_url
from relman.output.console import ConsoleProtocol
from relman.storage.store import ObjectStore

__all__ = [
    "ReleaseListing",
    "ReleaseNotes",
    "ReleaseSummary",
    "UpdateCheck",
    "UpdateInfo",
    "UpdateService",
    "validate_entry",
]


@dataclass(frozen=True, slots=True)
class UpdateInfo:
    version: str
    display_version: str
    release_notes: str | None
    release_notes_url: str
    is_required: bool
    download_url: str | None
    model: str | None
    channel: str
    release_date: str | None

    def to_dict(self) -> StrDict:
        return {
            "version": self.version,
            "displayVersion": self.display_version,
            "releaseNotes": self.release_notes,
            "releaseNotesUrl": self.release_notes_url,
            "isRequired": self.is_required,
            "downloadUrl": self.download_url,
            "model": self.model,
            "channel": self.channel,
            "releaseDate": self.release_date,
        }


@dataclass(frozen=True, slots=True)
class UpdateCheck:
    has_update: bool
    current_version: str | None
    message: str | None = None
    update_info: UpdateInfo | None = None

    def to_dict(self) -> StrDict:
        if self.update_info is not None:
            return {"hasUpdate": True, "updateInfo": self.update_info.to_dict()}
        return {
            "hasUpdate": self.has_update,
            "currentVersion": self.current_version,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class ReleaseSummary:
    version: str
    date: str
    title: str
    required: bool
    model: str | None
    channel: str
    notes_url: str

    def to_dict(self) -> StrDict:
        return {
            "version": self.version,
            "date": self.date,
            "title": self.title,
            "required": self.required,
            "model": self.model,
            "channel": self.channel,
            "notesUrl": self.notes_url,
        }


@dataclass(frozen=True, slots=True)
class ReleaseListing:
    product: str
    model: str | None
    channel: str
    releases: tuple[ReleaseSummary, ...]

    def to_dict(self) -> StrDict:
        return {
            "product": self.product,
            "model": self.model,
            "channel": self.channel,
            "releases": [r.to_dict() for r in self.releases],
        }


@dataclass(frozen=True, slots=True)
class ReleaseNotes:
    product: str
    version: str
    model: str | None
    channel: str
    url: str | None
    content: str | None
    expires_at: str

    def to_dict(self) -> StrDict:
        return {
            "product": self.product,
            "version": self.version,
            "model": self.model,
            "channel": self.channel,
            "url": self.url,
            "content": self.content,
            "expiresAt": self.expires_at,
        }


def validate_entry(entry: ReleaseEntry) -> Result[ReleaseEntry, UpdateError]:
    """Check a new entry before it is written to the manifest."""

    def bad(message: str, hint: str | None = None) -> Err[UpdateError]:
        return Err(UpdateError(kind="bad_request", message=message, hint=hint))

    if entry.product not in PRODUCTS:
        return bad(f"unknown product: {entry.product!r}", "One of: " + ", ".join(PRODUCTS))
    if not entry.version:
        return bad("missing version")
    if entry.channel is not None and entry.channel not in CHANNELS:
        return bad(f"unknown channel: {entry.channel!r}", "One of: " + ", ".join(CHANNELS))
    if entry.model is not None:
        if entry.product != "instrument":
            return bad("model is only valid for instrument releases")
        if entry.model not in INSTRUMENT_MODELS:
            return bad(f"unknown model: {entry.model!r}", "One of: " + ", ".join(INSTRUMENT_MODELS))
    if entry.product == "desktop" and not entry.files:
        return bad("desktop releases need at least one platform file")
    if entry.product != "desktop" and entry.files:
        return bad(f"{entry.product} releases carry a single file, not per-platform files")
    if entry.product != "desktop" and not entry.file:
        return bad(f"{entry.product} releases need a file")
    return Ok(entry)


class UpdateService:
    """Update checks, listings, release notes, publish and delete."""

    def __init__(
        self,
        *,
        config: Config,
        store: ObjectStore | None,
        console: ConsoleProtocol,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._console = console
        self._clock = clock or SystemClock()
        self.manifests = ManifestStore(storage=config.storage, store=store, console=console)
        self.issuer = (
            SignedUrlIssuer(store=store, signing=config.signing, clock=self._clock, console=console)
            if store is not None
            else None
        )
        self.notes = ReleaseNotesResolver(store=store, issuer=self.issuer, console=console)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def check_update(
        self,
        product: str,
        current_version: str | None,
        *,
        model: str | None = None,
        channel: str | None = None,
        platform: str | None = None,
        scenario: str | None = None,
    ) -> Result[UpdateCheck, UpdateError]:
        filters = ReleaseFilters(product=product, model=model, channel=channel or DEFAULT_CHANNEL)
        validated = filters.validate()
        if isinstance(validated, Err):
            return validated
        filters = validated.value

        # A configured scenario applies to every request.
        active = self._config.server.scenario or scenario or "has_update"
        if active not in SCENARIOS:
            return Err(
                UpdateError(
                    kind="bad_request",
                    message=f"unknown scenario: {active!r}",
                    hint="One of: " + ", ".join(SCENARIOS),
                )
            )
        if active == "error":
            return Err(
                UpdateError(
                    kind="upstream_unavailable",
                    message="Update server temporarily unavailable",
                )
            )

        loaded = self.manifests.load()
        if isinstance(loaded, Err):
            return Ok(
                UpdateCheck(
                    has_update=False,
                    current_version=current_version,
                    message="No manifest configured",
                )
            )

        entry = select(loaded.value.updates, filters)
        if entry is None:
            return Ok(
                UpdateCheck(
                    has_update=False,
                    current_version=current_version,
                    message="No updates configured",
                )
            )

        decision = check_applicability(entry, current_version, active, platform)
        if not isinstance(decision, Applicable):
            return Ok(
                UpdateCheck(
                    has_update=False,
                    current_version=current_version,
                    message="You are running the latest version",
                )
            )

        notes = self.notes.resolve(entry)
        return Ok(
            UpdateCheck(
                has_update=True,
                current_version=current_version,
                update_info=UpdateInfo(
                    version=entry.version,
                    display_version=entry.shown_version,
                    release_notes=notes.content if notes is not None else None,
                    release_notes_url=self._notes_endpoint(
                        product=filters.product,
                        version=entry.version,
                        model=model,
                        channel=filters.channel,
                        include_default_channel=False,
                    ),
                    is_required=decision.is_required,
                    download_url=resolve_download_url(entry, decision.artifact, self.issuer),
                    model=entry.model,
                    channel=entry.effective_channel,
                    release_date=entry.release_date,
                ),
            )
        )

    def list_releases(
        self,
        product: str,
        *,
        model: str | None = None,
        channel: str = DEFAULT_CHANNEL,
    ) -> Result[ReleaseListing, UpdateError]:
        validated = ReleaseFilters(product=product, model=model, channel=channel).validate()
        if isinstance(validated, Err):
            return validated
        filters = validated.value

        loaded = self.manifests.load()
        if isinstance(loaded, Err):
            return loaded

        now = self._clock.now()
        releases = tuple(
            ReleaseSummary(
                version=e.shown_version,
                date=e.release_date or now.isoformat(),
                title=f"{filters.product} {e.shown_version}",
                required=e.is_required,
                model=e.model,
                channel=e.effective_channel,
                notes_url=self._notes_endpoint(
                    product=filters.product,
                    version=e.version,
                    model=filters.model,
                    channel=filters.channel,
                    include_default_channel=True,
                ),
            )
            for e in rank(filter_entries(loaded.value.updates, filters), undated_as=now)
        )
        return Ok(
            ReleaseListing(
                product=filters.product,
                model=filters.model,
                channel=filters.channel,
                releases=releases,
            )
        )

    def get_release_notes(
        self,
        product: str,
        *,
        version: str | None = None,
        model: str | None = None,
        channel: str = DEFAULT_CHANNEL,
    ) -> Result[ReleaseNotes, UpdateError]:
        validated = ReleaseFilters(
            product=product, model=model, channel=channel, version=version
        ).validate()
        if isinstance(validated, Err):
            return validated
        filters = validated.value

        loaded = self.manifests.load()
        if isinstance(loaded, Err):
            return loaded

        candidates = filter_entries(loaded.value.updates, filters)
        if not candidates:
            return Err(
                UpdateError(
                    kind="not_found",
                    message=f"No release notes configured for product '{filters.product}'",
                )
            )

        # Unknown versions fall back to the latest release.
        exact = [e for e in candidates if e.version == filters.version]
        entry = exact[0] if exact else rank(candidates)[0]

        notes = self.notes.resolve(entry)
        if notes is None:
            return Err(UpdateError(kind="not_found", message="Release notes not available"))

        ttl = self._config.signing.ttl_seconds
        expires = isoformat_z(self._clock.now() + timedelta(seconds=ttl))

        return Ok(
            ReleaseNotes(
                product=filters.product,
                version=entry.shown_version,
                model=entry.model,
                channel=entry.effective_channel,
                url=notes.url,
                content=notes.content,
                expires_at=expires,
            )
        )

    def health(self) -> StrDict:
        storage = self._config.storage
        return {
            "status": "ok",
            "storage": (
                {"type": "azure-blob", "account": storage.account, "container": storage.container}
                if storage.is_remote
                else {"type": "local", "path": str(storage.local_manifest_path)}
            ),
            "signing": (
                "shared-key"
                if self._config.signing.account_key
                else "static-token"
                if self._config.signing.static_token
                else "none"
            ),
            "scenarios": list(SCENARIOS),
            "products": {
                "desktop": {"channels": list(CHANNELS)},
                "instrument": {"models": list(INSTRUMENT_MODELS), "channels": list(CHANNELS)},
                "recovery": {"channels": list(CHANNELS)},
            },
            "manifestSchema": {
                "note": "Use 'version' for comparison (numeric only), "
                "'displayVersion' for UI display",
                "example": {"version": "2025.3.9", "displayVersion": "2025.3.0-rc9"},
            },
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def publish_release(self, entry: ReleaseEntry) -> Result[ManifestDocument, UpdateError]:
        """Upsert `entry` into the stored manifest.

        Read-modify-write without a version check: a concurrent publish can
        be overwritten.
        """
        validated = validate_entry(entry)
        if isinstance(validated, Err):
            return validated

        current = self.manifests.load_for_update()
        if isinstance(current, Err):
            return current

        updated = publish(current.value, entry)
        saved = self.manifests.save(updated)
        if isinstance(saved, Err):
            return saved
        return Ok(updated)

    def delete_release(
        self,
        filters: ReleaseFilters,
        choose: ChooseCallback,
    ) -> Result[DeleteOutcome, UpdateError]:
        validated = filters.validate()
        if isinstance(validated, Err):
            return validated

        loaded = self.manifests.load_for_update()
        if isinstance(loaded, Err):
            return loaded

        outcome = delete_interactive(
            loaded.value,
            validated.value,
            choose,
            store=self._store,
            console=self._console,
        )
        if isinstance(outcome, Err) or outcome.value.declined:
            return outcome

        saved = self.manifests.save(outcome.value.document)
        if isinstance(saved, Err):
            return saved
        return outcome

    # ------------------------------------------------------------------

    def _notes_endpoint(
        self,
        *,
        product: str,
        version: str,
        model: str | None,
        channel: str,
        include_default_channel: bool,
    ) -> str:
        params: list[tuple[str, str]] = [("product", product), ("version", version)]
        if model:
            params.append(("model", model))
        if include_default_channel or channel != DEFAULT_CHANNEL:
            params.append(("channel", channel))
        return f"{self._config.server.base_url}/api/release-notes?{urlencode(params)}"
