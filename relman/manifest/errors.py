from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

UpdateErrorKind = Literal[
    "not_found",
    "malformed",
    "upstream_unavailable",
    "bad_request",
    "no_match",
    "internal",
]


@dataclass(frozen=True, slots=True)
class UpdateError:
    """Error payload shared by the store, selector, mutator and service.

    `no_match` is not a failure of the system; callers decide whether an empty
    selection is an empty response or an operator-facing message.
    """

    kind: UpdateErrorKind
    message: str
    hint: str | None = None
