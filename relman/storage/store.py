"""Object store abstraction.

This module provides:
- ObjectStore: Protocol for the blob container the manifest and artifacts
  live in (injectable for tests)
- StoreError: failure details for a single store call
- MemoryObjectStore: in-memory implementation for tests and dry runs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable
from urllib.parse import quote

from relman.core.clock import isoformat_z
from relman.core.result import Err, Ok, Result

__all__ = [
    "ObjectStore",
    "StoreError",
    "MemoryObjectStore",
    "quote_object_name",
]


@dataclass(frozen=True, slots=True)
class StoreError:
    """Object store error details.

    Attributes:
        name: Object name the call was about ("" for container-level calls)
        status: HTTP status code (0 for network or local errors)
        message: Human-readable error message
    """

    name: str
    status: int
    message: str

    @property
    def not_found(self) -> bool:
        return self.status == 404

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.name})"
        return f"{self.message} ({self.name})"


@runtime_checkable
class ObjectStore(Protocol):
    """Blob container holding the manifest, artifacts and release notes."""

    @property
    def container(self) -> str:
        """Container name, used to scope signed links."""
        ...

    @property
    def container_url(self) -> str:
        """Public URL of the container, without trailing slash."""
        ...

    @property
    def can_sign(self) -> bool:
        """True when a shared key is available for per-request signing."""
        ...

    def object_url(self, name: str) -> str:
        """Plain (unsigned) URL of an object."""
        ...

    def get(self, name: str) -> Result[bytes, StoreError]:
        """Download an object. Err.not_found when it does not exist."""
        ...

    def put(self, name: str, data: bytes, content_type: str) -> Result[None, StoreError]:
        """Upload an object, overwriting any existing one."""
        ...

    def delete(self, name: str) -> Result[None, StoreError]:
        """Delete an object. Err.not_found when it does not exist."""
        ...

    def sign(
        self,
        container: str,
        name: str,
        permissions: str,
        starts_on: datetime,
        expires_on: datetime,
    ) -> Result[str, StoreError]:
        """Return a query string granting `permissions` on one object.

        Only valid when `can_sign` is True.
        """
        ...


def quote_object_name(name: str) -> str:
    return quote(name, safe="/~")


def _empty_objects() -> dict[str, tuple[bytes, str]]:
    return {}


def _empty_calls() -> list[tuple[str, str]]:
    return []


def _empty_failures() -> dict[tuple[str, str], StoreError]:
    return {}


@dataclass
class MemoryObjectStore:
    """In-memory store for testing.

    Usage:
        store = MemoryObjectStore()
        store.set_text("manifest.json", '{"updates": []}')
        store.fail("get", "notes.md", status=503)
        assert store.calls == []
    """

    account: str = "devstore"
    container_name: str = "updates"
    account_key: str | None = "c2VjcmV0"
    objects: dict[str, tuple[bytes, str]] = field(default_factory=_empty_objects)
    calls: list[tuple[str, str]] = field(default_factory=_empty_calls)
    failures: dict[tuple[str, str], StoreError] = field(default_factory=_empty_failures)

    @property
    def container(self) -> str:
        return self.container_name

    @property
    def container_url(self) -> str:
        return f"https://{self.account}.blob.core.windows.net/{self.container_name}"

    @property
    def can_sign(self) -> bool:
        return self.account_key is not None

    def object_url(self, name: str) -> str:
        return f"{self.container_url}/{quote_object_name(name)}"

    # Test helpers

    def set_text(self, name: str, text: str, content_type: str = "text/plain") -> None:
        self.objects[name] = (text.encode("utf-8"), content_type)

    def text(self, name: str) -> str:
        return self.objects[name][0].decode("utf-8")

    def fail(self, op: str, name: str, *, status: int = 500, message: str = "mock failure") -> None:
        """Make the next and all later `op` calls on `name` fail."""
        self.failures[(op, name)] = StoreError(name=name, status=status, message=message)

    def calls_for(self, op: str) -> list[str]:
        return [name for kind, name in self.calls if kind == op]

    # ObjectStore

    def get(self, name: str) -> Result[bytes, StoreError]:
        self.calls.append(("get", name))
        failure = self.failures.get(("get", name))
        if failure is not None:
            return Err(failure)
        if name not in self.objects:
            return Err(StoreError(name=name, status=404, message="BlobNotFound (mock)"))
        return Ok(self.objects[name][0])

    def put(self, name: str, data: bytes, content_type: str) -> Result[None, StoreError]:
        self.calls.append(("put", name))
        failure = self.failures.get(("put", name))
        if failure is not None:
            return Err(failure)
        self.objects[name] = (data, content_type)
        return Ok(None)

    def delete(self, name: str) -> Result[None, StoreError]:
        self.calls.append(("delete", name))
        failure = self.failures.get(("delete", name))
        if failure is not None:
            return Err(failure)
        if self.objects.pop(name, None) is None:
            return Err(StoreError(name=name, status=404, message="BlobNotFound (mock)"))
        return Ok(None)

    def sign(
        self,
        container: str,
        name: str,
        permissions: str,
        starts_on: datetime,
        expires_on: datetime,
    ) -> Result[str, StoreError]:
        self.calls.append(("sign", name))
        if self.account_key is None:
            return Err(StoreError(name=name, status=0, message="no shared key configured"))
        return Ok(
            f"sp={permissions}&st={isoformat_z(starts_on)}&se={isoformat_z(expires_on)}"
            f"&sr=b&sig=mock-{container}"
        )
