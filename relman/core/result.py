"""Ok/Err values for operations that can fail in expected ways.

A missing manifest, a refused upload or a bad filter is reported as an
`Err` carrying a small payload (`UpdateError`, `StoreError`, ...). Callers
branch with `isinstance(result, Err)` and read `.value` or `.error`:

    loaded = manifests.load()
    if isinstance(loaded, Err):
        return loaded
    document = loaded.value

Exceptions are kept for programming errors.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["Err", "Ok", "Result"]


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
