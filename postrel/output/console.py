"""Progress output for a post-release run.

Each step ends with a success or failure marker, each target starts with a
header. Code prints through ``ConsoleProtocol``: ``RichConsole`` renders to
the terminal, ``MockConsole`` keeps the lines for assertions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "OutputRecord",
    "RichConsole",
    "Style",
]


class Style(Enum):
    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()  # echoed commands, request/response context
    HEADER = auto()  # one per target

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        """Print ``message`` as is."""
        ...

    def success(self, message: str) -> None:
        """A step finished."""
        ...

    def error(self, message: str) -> None:
        """A step or target failed."""
        ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None:
        """Start of a target or phase."""
        ...

    def newline(self) -> None: ...


# style -> (marker printed before the message, rich style of the marker)
_MARKERS: dict[Style, tuple[str, str]] = {
    Style.SUCCESS: ("✅", "green"),
    Style.ERROR: ("❌", "red bold"),
    Style.WARNING: ("warning:", "yellow"),
    Style.INFO: ("☝ ", "cyan"),
}

_RICH_STYLES: dict[Style, str] = {
    Style.SUCCESS: "green",
    Style.ERROR: "red bold",
    Style.WARNING: "yellow",
    Style.INFO: "cyan",
    Style.DIM: "dim",
    Style.HEADER: "blue bold",
}


class RichConsole:
    """Terminal console backed by Rich. Messages are never parsed as markup."""

    def __init__(self) -> None:
        from rich.console import Console

        self._out = Console(highlight=False)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._out.print(message, style=_RICH_STYLES.get(style), markup=False)

    def _marked(self, style: Style, message: str) -> None:
        marker, marker_style = _MARKERS[style]
        self._out.print(f"{marker} ", style=marker_style, end="", markup=False)
        self._out.print(message, markup=False)

    def success(self, message: str) -> None:
        self._marked(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._marked(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._marked(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._marked(Style.INFO, message)

    def header(self, message: str) -> None:
        self._out.rule(style="dim")
        self.print(f"🌟 {message}", Style.HEADER)

    def newline(self) -> None:
        self._out.print()


@dataclass
class OutputRecord:
    message: str
    style: Style


# Plain-text stand-ins for the terminal markers.
_MOCK_PREFIXES: dict[Style, str] = {
    Style.SUCCESS: "OK ",
    Style.ERROR: "error: ",
    Style.WARNING: "warning: ",
    Style.INFO: "info: ",
}


def _no_records() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console that records every line for tests."""

    outputs: list[OutputRecord] = field(default_factory=_no_records)

    def _record(self, style: Style, message: str) -> None:
        self.outputs.append(OutputRecord(_MOCK_PREFIXES.get(style, "") + message, style))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self._record(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._record(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._record(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._record(Style.INFO, message)

    def header(self, message: str) -> None:
        self._record(Style.HEADER, message)

    def newline(self) -> None:
        self._record(Style.DEFAULT, "")

    @property
    def messages(self) -> list[str]:
        return [record.message for record in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return self.count(Style.ERROR) > 0

    def find(self, substring: str) -> list[OutputRecord]:
        """Records whose message contains ``substring``."""
        return [record for record in self.outputs if substring in record.message]

    def count(self, style: Style) -> int:
        return len([record for record in self.outputs if record.style is style])
