from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from pathlib import Path

from postrel.core.result import Err, Ok, Result

# semver.org 2.0.0, with an optional leading "v" for tag-style input.
_SEMVER_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

VERSION_FILE = "VERSION"


@dataclass(frozen=True, slots=True)
class VersionError:
    message: str
    path: Path | None = None


@total_ordering
@dataclass(frozen=True, slots=True, eq=True)
class Version:
    major: int
    minor: int
    patch: int
    pre: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    def __str__(self) -> str:
        out = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            out += "-" + ".".join(self.pre)
        if self.build:
            out += "+" + ".".join(self.build)
        return out

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._precedence() < other._precedence()

    def _precedence(self) -> tuple[int, int, int, int, tuple[tuple[int, int, str], ...]]:
        # A release (no pre-release) sorts after all of its pre-releases.
        # Numeric identifiers sort before alphanumeric ones.
        pre = tuple(
            (0, int(p), "") if p.isdigit() else (1, 0, p)
            for p in self.pre
        )
        return (self.major, self.minor, self.patch, 0 if self.pre else 1, pre)

    @property
    def tag(self) -> str:
        return f"v{self}"

    def bump_patch(self) -> Version:
        return Version(self.major, self.minor, self.patch + 1)

    def bump_minor(self) -> Version:
        return Version(self.major, self.minor + 1, 0)

    @classmethod
    def fallback(cls, major: int, minor: int, patch: int) -> Version:
        """Pre-release marker for builds made from an untagged checkout."""
        return cls(major, minor, patch, pre=("git",), build=("HEAD",))


def parse_version(text: str) -> Version | None:
    m = _SEMVER_RE.match(text.strip())
    if m is None:
        return None
    pre = tuple(m.group(4).split(".")) if m.group(4) else ()
    build = tuple(m.group(5).split(".")) if m.group(5) else ()
    return Version(int(m.group(1)), int(m.group(2)), int(m.group(3)), pre, build)


def read_version_file(path: Path) -> Result[Version, VersionError]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(VersionError(f"cannot read version file: {e}", path))

    version = parse_version(text)
    if version is None:
        return Err(VersionError(f"invalid version in {path.name}: {text.strip()!r}", path))
    return Ok(version)


def branch_name(version: Version, prefix: str) -> str:
    """Release branch for ``version``; identical versions always map to one branch."""
    return f"{prefix}-{version}"
