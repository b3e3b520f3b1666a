"""Backing object store for the manifest, artifacts and release notes."""

from .blob import BlobStore
from .store import MemoryObjectStore, ObjectStore, StoreError

__all__ = ["BlobStore", "MemoryObjectStore", "ObjectStore", "StoreError"]
