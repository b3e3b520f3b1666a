"""Dotted numeric version comparison.

This is deliberately not SemVer: there is no prerelease precedence and no
build metadata. Components are compared as integers, most significant first,
and anything cosmetic belongs in `displayVersion`, which is never compared.
A component that does not start with digits counts as 0 (so "1.x" == "1.0");
lenient on purpose for hand-edited manifests.
"""

from __future__ import annotations

import re

__all__ = ["is_newer", "parse_components"]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _parse_component(part: str) -> int:
    m = _LEADING_INT.match(part)
    if m is None:
        return 0
    return int(m.group(1))


def parse_components(version: str) -> list[int]:
    return [_parse_component(p) for p in version.split(".")]


def is_newer(candidate: str | None, baseline: str | None) -> bool:
    """Return True if `candidate` is strictly newer than `baseline`.

    A missing or empty value on either side counts as outdated, so the answer
    is True: a client that doesn't report its version is always offered the
    latest release.
    """
    if not candidate or not baseline:
        return True

    a = parse_components(candidate)
    b = parse_components(baseline)
    width = max(len(a), len(b))
    a += [0] * (width - len(a))
    b += [0] * (width - len(b))

    for ai, bi in zip(a, b):
        if ai > bi:
            return True
        if ai < bi:
            return False
    return False
