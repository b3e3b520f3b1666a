"""Operator-facing output.

Services never print directly. They receive a ConsoleProtocol and report
degraded paths (manifest fallback, notes download failure, failed object
deletes) through `warning`, so the same code runs quietly under tests
(MockConsole) and with styled output from the CLI (RichConsole).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "MockConsole",
]


class Style(Enum):
    """Message kinds; the value is the rich style used to render them."""

    DEFAULT = ""
    SUCCESS = "green"
    ERROR = "red bold"
    WARNING = "yellow"
    INFO = "cyan"
    DIM = "dim"
    HEADER = "blue bold"


# Prefix shown before each message kind.
_PREFIXES: dict[Style, str] = {
    Style.SUCCESS: "OK",
    Style.ERROR: "error:",
    Style.WARNING: "warning:",
    Style.INFO: "info:",
}


class ConsoleProtocol(Protocol):
    """Sink for styled operator messages."""

    def print(self, message: str, style: Style = Style.DEFAULT) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...


class _PrefixedConsole:
    def _emit(self, message: str, style: Style) -> None:
        raise NotImplementedError

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._emit(message, style)

    def success(self, message: str) -> None:
        self._emit(message, Style.SUCCESS)

    def error(self, message: str) -> None:
        self._emit(message, Style.ERROR)

    def warning(self, message: str) -> None:
        self._emit(message, Style.WARNING)

    def info(self, message: str) -> None:
        self._emit(message, Style.INFO)

    def header(self, message: str) -> None:
        self._emit(message, Style.HEADER)


class RichConsole(_PrefixedConsole):
    """Console backed by rich.

    Diagnostics go to stderr when `stderr=True` so that commands emitting JSON
    on stdout stay parseable. Messages are never parsed as rich markup:
    object names and signed URLs routinely contain brackets.
    """

    def __init__(self, *, stderr: bool = False) -> None:
        from rich.console import Console

        self._console = Console(stderr=stderr, highlight=False)

    @property
    def rich(self):  # noqa: ANN201
        """Underlying rich Console, for tables."""
        return self._console

    def _emit(self, message: str, style: Style) -> None:
        from rich.text import Text

        text = Text()
        if style is Style.HEADER:
            text.append("\n")
        prefix = _PREFIXES.get(style)
        if prefix is not None:
            text.append(prefix + " ", style=style.value)
            text.append(message)
        else:
            text.append(message, style=style.value)
        self._console.print(text)


@dataclass(frozen=True, slots=True)
class OutputRecord:
    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole(_PrefixedConsole):
    """Console that records output for assertions in tests."""

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)

    def _emit(self, message: str, style: Style) -> None:
        prefix = _PREFIXES.get(style)
        self.outputs.append(OutputRecord(f"{prefix} {message}" if prefix else message, style))

    def has_error(self) -> bool:
        return any(o.style is Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style is Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]
