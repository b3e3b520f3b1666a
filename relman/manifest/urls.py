"""Time-limited read links for stored objects, and download URL resolution."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import unquote, urlsplit

from relman.core.clock import Clock, isoformat_z
from relman.core.config import SigningConfig
from relman.core.fallback import first_available
from relman.core.result import Err
from relman.manifest.model import ReleaseEntry
from relman.output.console import ConsoleProtocol
from relman.storage.store import ObjectStore

__all__ = ["SignedUrl", "SignedUrlIssuer", "resolve_download_url", "local_download_path"]

READ_PERMISSION = "r"


@dataclass(frozen=True, slots=True)
class SignedUrl:
    url: str
    starts_on: datetime
    expires_on: datetime

    @property
    def expires_at(self) -> str:
        return isoformat_z(self.expires_on)


class SignedUrlIssuer:
    """Issues read-only links scoped to one object.

    Preference order: a per-request link signed with the shared key, then the
    configured static token appended to the object URL, then the bare object
    URL. The validity window starts `clock_skew_seconds` in the past.
    """

    def __init__(
        self,
        *,
        store: ObjectStore,
        signing: SigningConfig,
        clock: Clock,
        console: ConsoleProtocol,
    ) -> None:
        self._store = store
        self._signing = signing
        self._clock = clock
        self._console = console

    def window(self, ttl_seconds: int | None = None) -> tuple[datetime, datetime]:
        ttl = ttl_seconds if ttl_seconds is not None else self._signing.ttl_seconds
        now = self._clock.now()
        return (
            now - timedelta(seconds=self._signing.clock_skew_seconds),
            now + timedelta(seconds=ttl),
        )

    def issue(self, name: str, ttl_seconds: int | None = None) -> SignedUrl:
        starts_on, expires_on = self.window(ttl_seconds)
        base = self._store.object_url(name)

        url = first_available(
            [
                lambda: self._signed(base, name, starts_on, expires_on),
                lambda: self._with_static_token(base),
                lambda: base,
            ]
        )
        return SignedUrl(url=url or base, starts_on=starts_on, expires_on=expires_on)

    def _signed(self, base: str, name: str, starts_on: datetime, expires_on: datetime) -> str | None:
        if not self._store.can_sign:
            return None
        token = self._store.sign(self._store.container, name, READ_PERMISSION, starts_on, expires_on)
        if isinstance(token, Err):
            self._console.warning(
                f"failed to sign link for {name}, falling back to static token: {token.error.message}"
            )
            return None
        return f"{base}?{token.value}"

    def _with_static_token(self, base: str) -> str | None:
        token = self._signing.static_token
        if not token:
            return None
        return f"{base}{token if token.startswith('?') else '?' + token}"

    def object_name_for(self, url: str) -> str | None:
        """Object name if `url` is an unsigned link into our own container.

        URLs carrying a query string are assumed to be signed already and
        URLs elsewhere are not ours to sign; both return None.
        """
        prefix = self._store.container_url.rstrip("/") + "/"
        if not url.startswith(prefix):
            return None
        if urlsplit(url).query:
            return None
        name = unquote(url[len(prefix) :])
        return name or None


def local_download_path(name: str) -> str:
    return f"/downloads/{name}"


def resolve_download_url(
    entry: ReleaseEntry,
    artifact: str | None,
    issuer: SignedUrlIssuer | None,
) -> str | None:
    """Where a client should download `entry` from.

    `artifact` is the object name picked for the client's platform.

    With a backing store the artifact is always served through a fresh
    signed link, even if the entry carries an explicit `downloadUrl` (those
    tend to be stale). Without one, the explicit URL wins, then the local
    downloads path.
    """
    if issuer is not None:
        if artifact is None:
            return entry.download_url
        return issuer.issue(artifact).url
    return first_available(
        [
            lambda: entry.download_url,
            lambda: local_download_path(artifact) if artifact else None,
        ]
    )
