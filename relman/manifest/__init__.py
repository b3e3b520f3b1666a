"""Manifest model, selection, notes resolution, signing and mutation."""

from .errors import UpdateError
from .model import ManifestDocument, NotesRef, ReleaseEntry
from .mutator import Candidate, DeleteOutcome, delete_interactive, publish
from .selector import ReleaseFilters, check_applicability, select
from .versions import is_newer

__all__ = [
    "Candidate",
    "DeleteOutcome",
    "ManifestDocument",
    "NotesRef",
    "ReleaseEntry",
    "ReleaseFilters",
    "UpdateError",
    "check_applicability",
    "delete_interactive",
    "is_newer",
    "publish",
    "select",
]
