"""Project website: render the landing page for a release and publish it."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from pathlib import Path

from postrel.core.result import Err, Ok, Result
from postrel.git.repository import RepositoryBackend
from postrel.output.console import ConsoleProtocol
from postrel.platform.files import atomic_write_text
from postrel.release.errors import UpdateError
from postrel.release.version import Version

TEMPLATE_FILE = "index.tpl"
OUTPUT_FILE = "index.html"

# Go template actions as used by the existing page: {{ .Version }}, {{.Version}}
_ACTION_RE = re.compile(r"\{\{-?\s*\.(\w+)\s*-?\}\}")


@dataclass(frozen=True, slots=True)
class WebsiteError:
    message: str
    path: Path | None = None

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.message} ({self.path})"


def render_template(template: str, values: dict[str, str]) -> Result[str, WebsiteError]:
    missing: list[str] = []

    def substitute(m: re.Match[str]) -> str:
        key = m.group(1)
        if key not in values:
            missing.append(key)
            return m.group(0)
        return html.escape(values[key])

    rendered = _ACTION_RE.sub(substitute, template)
    if missing:
        return Err(WebsiteError(f"template refers to unknown field(s): {', '.join(sorted(set(missing)))}"))
    return Ok(rendered)


def render_website(html_dir: Path, version: Version) -> Result[Path, WebsiteError]:
    """Render ``index.tpl`` in ``html_dir`` into ``index.html``."""
    src = html_dir / TEMPLATE_FILE
    try:
        template = src.read_text(encoding="utf-8")
    except OSError as e:
        return Err(WebsiteError(f"cannot read template: {e}", src))

    rendered = render_template(template, {"Version": str(version)})
    if isinstance(rendered, Err):
        return Err(WebsiteError(rendered.error.message, src))

    dst = html_dir / OUTPUT_FILE
    try:
        atomic_write_text(dst, rendered.value)
    except OSError as e:
        return Err(WebsiteError(f"cannot write page: {e}", dst))
    return Ok(dst)


def publish_website(
    backend: RepositoryBackend, version: Version, console: ConsoleProtocol, *, branch: str
) -> Result[None, UpdateError]:
    """Commit the rendered page and push it to ``branch``."""
    committed = backend.stage_and_commit([OUTPUT_FILE], f"Update to {version.tag}")
    if isinstance(committed, Err):
        return Err(UpdateError(step="commit", message="failed to commit website", detail=str(committed.error)))

    pushed = backend.push("origin", branch)
    if isinstance(pushed, Err):
        return Err(UpdateError(step="push", message="failed to push website", detail=str(pushed.error)))

    console.success(f"Published website for {version.tag}")
    return Ok(None)
