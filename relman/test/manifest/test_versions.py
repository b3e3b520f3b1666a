"""Tests for dotted numeric version comparison."""

from __future__ import annotations

import pytest

from relman.manifest.versions import is_newer, parse_components

SAMPLES = ["1", "1.0", "1.0.1", "1.2", "1.10", "2.0.0.1", "2025.3.9", "0.9.99", "1.x", "3.0rc1"]


class TestIsNewer:
    @pytest.mark.parametrize(
        ("candidate", "baseline", "expected"),
        [
            ("2.0.0", "1.9.9", True),
            ("1.10", "1.9", True),
            ("1.0.1", "1.0", True),
            ("1.0", "1.0.0", False),
            ("1.0.0", "1.0", False),
            ("2025.3.9", "2025.3.10", False),
            ("1.x", "1.0", False),
            ("3.0rc1", "3.0", False),
        ],
    )
    def test_ordering(self, candidate: str, baseline: str, expected: bool) -> None:
        assert is_newer(candidate, baseline) is expected

    def test_empty_baseline_is_outdated(self) -> None:
        assert is_newer("1.0.0", None)
        assert is_newer("1.0.0", "")

    def test_empty_candidate(self) -> None:
        assert is_newer("", "1.0.0")

    def test_irreflexive(self) -> None:
        for v in SAMPLES:
            assert not is_newer(v, v)

    def test_antisymmetric(self) -> None:
        for a in SAMPLES:
            for b in SAMPLES:
                assert not (is_newer(a, b) and is_newer(b, a)), (a, b)


def test_parse_components() -> None:
    assert parse_components("1.2.3") == [1, 2, 3]
    assert parse_components("1.beta.3") == [1, 0, 3]
    assert parse_components("4rc2.1") == [4, 1]
