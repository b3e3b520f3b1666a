"""Exit codes for the relman CLI.

Each UpdateError kind maps onto one of these codes so shell scripts driving
publish/delete can tell a bad invocation from an unreachable store.
"""

from enum import IntEnum

__all__ = ["ErrorCode", "code_for_kind"]


class ErrorCode(IntEnum):
    """Process exit codes. Values are stable.

    - 0: Success
    - 1: User error (bad arguments, nothing matched the filters)
    - 2: Not found (no manifest, no release notes)
    - 4: Upstream error (object store unreachable or refused the request)
    - 5: Internal error
    """

    OK = 0
    USER_ERROR = 1
    NOT_FOUND = 2
    UPSTREAM_ERROR = 4
    INTERNAL_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK


_KIND_CODES: dict[str, ErrorCode] = {
    "bad_request": ErrorCode.USER_ERROR,
    "no_match": ErrorCode.USER_ERROR,
    "not_found": ErrorCode.NOT_FOUND,
    "malformed": ErrorCode.NOT_FOUND,
    "upstream_unavailable": ErrorCode.UPSTREAM_ERROR,
    "internal": ErrorCode.INTERNAL_ERROR,
}


def code_for_kind(kind: str) -> ErrorCode:
    return _KIND_CODES.get(kind, ErrorCode.INTERNAL_ERROR)
