"""Ordered fallback chains.

A chain is a sequence of zero-argument steps. Steps run in order and the
first non-None value wins; later steps never run.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")

type Step[T] = Callable[[], T | None]


def first_available[T](steps: Iterable[Step[T]]) -> T | None:
    for step in steps:
        value = step()
        if value is not None:
            return value
    return None
