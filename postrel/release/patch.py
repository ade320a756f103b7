"""Line-prefix rewriting of build definitions.

Packaging recipes (APKBUILD, Homebrew formulae, void templates) are not
parsed. Each line is checked against an ordered set of prefixes; the first
matching rule either replaces the whole line or drops it. Lines that match
nothing are copied through byte for byte.

Usage:
    rules = {"pkgver=": "pkgver=1.2.4", "# obsolete": None}
    match apply_rules(Path("APKBUILD"), rules):
        case Ok(report):
            print(f"{report.replaced} replaced, {report.deleted} deleted")
        case Err(e):
            print(f"patch failed: {e}")
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from postrel.core.result import Err, Ok, Result
from postrel.platform.files import atomic_writer

__all__ = ["PatchIOError", "PatchReport", "PatchRules", "apply_rules", "match_rule"]

# prefix -> replacement line, or None to delete the line
type PatchRules = Mapping[str, str | None]


@dataclass(frozen=True, slots=True)
class PatchIOError:
    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass(frozen=True, slots=True)
class PatchReport:
    path: Path
    replaced: int = 0
    deleted: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.replaced or self.deleted)


def match_rule(line: str, rules: PatchRules) -> tuple[str, str | None] | None:
    """Return the first ``(prefix, action)`` whose prefix starts ``line``."""
    for prefix, action in rules.items():
        if line.startswith(prefix):
            return (prefix, action)
    return None


def _split_terminator(raw: bytes) -> tuple[bytes, bytes]:
    if raw.endswith(b"\r\n"):
        return raw[:-2], b"\r\n"
    if raw.endswith(b"\n"):
        return raw[:-1], b"\n"
    return raw, b""


def apply_rules(path: Path, rules: PatchRules) -> Result[PatchReport, PatchIOError]:
    """Rewrite ``path`` in place according to ``rules``.

    The new content is written to a temporary sibling and renamed over the
    original only after the whole file has been processed. A file without
    any matching line is rewritten unchanged, which is not an error.

    Args:
        path: File to rewrite.
        rules: Ordered prefix rules.

    Returns:
        Ok(PatchReport) or Err(PatchIOError) if the source cannot be read
        or the replacement cannot be written.
    """
    replaced = 0
    deleted = 0
    try:
        with path.open("rb") as src, atomic_writer(path) as dst:
            for raw in src:
                body, end = _split_terminator(raw)
                hit = match_rule(body.decode("utf-8", errors="surrogateescape"), rules)
                if hit is None:
                    dst.write(raw)
                    continue

                _, action = hit
                if action is None:
                    deleted += 1
                    continue
                dst.write(action.encode("utf-8") + (end or b"\n"))
                replaced += 1
    except OSError as e:
        return Err(PatchIOError(path=path, message=e.strerror or str(e)))

    return Ok(PatchReport(path=path, replaced=replaced, deleted=deleted))
