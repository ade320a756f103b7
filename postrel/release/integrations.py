"""Synchronise integration repositories with a new upstream release.

Integrations (credential helpers, browser bridges, ...) live next to the
upstream checkout and depend on it as a Go module. For a release they get
their dependency bumped, their Go toolchain aligned with ours, their own
VERSION/CHANGELOG updated, and a matching tag.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from postrel.core.config import ProjectConfig
from postrel.core.result import Err, Ok, Result
from postrel.git.repository import GitRepository, RepositoryBackend
from postrel.output.console import ConsoleProtocol, Style
from postrel.platform.files import atomic_write_text
from postrel.platform.process import ProcessError
from postrel.platform.process import run as run_process
from postrel.release.changelog import prepend_changelog, write_version_file, write_version_go
from postrel.release.dispatcher import TargetResult
from postrel.release.errors import UpdateError
from postrel.release.version import Version

__all__ = [
    "IntegrationRunner",
    "IntegrationTarget",
    "detect_go_version",
    "integration_targets",
    "update_workflows",
]

_COMMAND_TIMEOUT_SECONDS = 10 * 60.0
_GO_VERSION_RE = re.compile(r"go-version:\s+\d+\.\d+")
_GOVERSION_OUTPUT_RE = re.compile(r"go(\d+)\.(\d+)")
LINT_CONFIG = ".golangci.yml"


@dataclass(frozen=True, slots=True)
class IntegrationTarget:
    name: str
    work_dir: Path


def integration_targets(names: tuple[str, ...], *, source_root: Path) -> list[IntegrationTarget]:
    """Integrations are expected as siblings of the upstream checkout."""
    parent = source_root.resolve().parent
    return [IntegrationTarget(name=n, work_dir=parent / n) for n in names]


def detect_go_version(cwd: Path) -> Result[str, ProcessError]:
    """Local Go toolchain as ``major.minor`` (the form go.mod and workflows use)."""
    result = run_process(["go", "env", "GOVERSION"], cwd=cwd, timeout=30.0)
    if isinstance(result, Err):
        return result
    m = _GOVERSION_OUTPUT_RE.search(result.value)
    if m is None:
        return Err(
            ProcessError(
                command=("go", "env", "GOVERSION"),
                returncode=0,
                stdout=result.value,
                stderr=f"unrecognised Go version: {result.value.strip()!r}",
            )
        )
    return Ok(f"{m.group(1)}.{m.group(2)}")


def update_workflows(repo_dir: Path, go_version: str) -> list[Path]:
    """Pin ``go-version:`` in every workflow file; returns files that changed."""
    workflows = repo_dir / ".github" / "workflows"
    if not workflows.is_dir():
        return []

    changed: list[Path] = []
    for path in sorted(workflows.glob("*.yml")):
        if not path.is_file():
            continue
        text = path.read_text(encoding="utf-8")
        updated = _GO_VERSION_RE.sub(f"go-version: {go_version}", text)
        if updated == text:
            continue
        atomic_write_text(path, updated)
        changed.append(path)
    return changed


class IntegrationRunner:
    """Brings one integration repository to the new upstream release.

    An integration that already carries the release tag is left alone.
    """

    def __init__(
        self,
        *,
        project: ProjectConfig,
        version: Version,
        source_root: Path,
        go_version: str,
        console: ConsoleProtocol,
        backend_factory: Callable[[Path], RepositoryBackend] | None = None,
    ) -> None:
        self.project = project
        self.version = version
        self.source_root = source_root
        self.go_version = go_version
        self.console = console
        self.backend_factory = backend_factory or self._git

    def _git(self, work_dir: Path) -> RepositoryBackend:
        return GitRepository(work_dir, default_branch=self.project.default_branch)

    def _command(self, target: IntegrationTarget, cmd: list[str]) -> Result[None, UpdateError]:
        self.console.print(f"Running command: {' '.join(cmd)}", Style.DIM)
        result = run_process(cmd, cwd=target.work_dir, timeout=_COMMAND_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(UpdateError(step="command", message=f"{' '.join(cmd)} failed", detail=result.error.detail))
        return Ok(None)

    def _done(self, target: IntegrationTarget, what: str) -> None:
        self.console.success(f"[{target.name}] {what}")

    def __call__(self, target: IntegrationTarget) -> Result[TargetResult, UpdateError]:
        repo = self.backend_factory(target.work_dir)
        tag = self.version.tag

        if repo.has_tag(tag):
            return Ok(TargetResult(summary=f"has tag {tag} already"))
        self._done(target, f"{tag} is not tagged, yet.")

        if not repo.is_clean():
            return Err(UpdateError(step="clean", message="working tree dirty", detail=str(target.work_dir)))
        self._done(target, "Git is clean.")

        pulled = repo.pull()
        if isinstance(pulled, Err):
            return Err(UpdateError(step="pull", message="pull failed", detail=str(pulled.error)))

        for cmd, what in (
            (["make", "upgrade"], "make upgrade."),
            (["go", "get", f"{self.project.module}@{tag}"], f"updated {self.project.name} dependency."),
        ):
            ran = self._command(target, cmd)
            if isinstance(ran, Err):
                return ran
            self._done(target, what)

        written = self._write_files(target)
        if isinstance(written, Err):
            return written

        return self._finalize(target, repo, written.value)

    def _write_files(self, target: IntegrationTarget) -> Result[list[str], UpdateError]:
        """Update the files a release touches; returns them relative to the checkout."""
        work = target.work_dir
        lint_src = self.source_root / LINT_CONFIG
        written: list[Path] = []
        try:
            if lint_src.is_file():
                shutil.copyfile(lint_src, work / LINT_CONFIG)
                written.append(work / LINT_CONFIG)
                self._done(target, f"synced {LINT_CONFIG}.")

            ran = self._command(target, ["go", "mod", "edit", f"-go={self.go_version}"])
            if isinstance(ran, Err):
                return ran
            self._done(target, f"updated Go version in go.mod to {self.go_version}.")
            # make upgrade and go get rewrite these as well
            written.extend(p for p in (work / "go.mod", work / "go.sum") if p.is_file())

            for path in update_workflows(work, self.go_version):
                self.console.print(f"Wrote {path}", Style.DIM)
                written.append(path)
            self._done(target, "updated workflows.")

            written.append(write_version_file(work, self.version))
            self._done(target, "wrote VERSION.")
            written.append(write_version_go(work, self.version))
            self._done(target, "wrote version.go.")
            written.append(prepend_changelog(work, self.version, self.project.name))
            self._done(target, "wrote CHANGELOG.md.")
        except (OSError, UnicodeError) as e:
            return Err(UpdateError(step="write", message="failed to update files", detail=str(e)))
        return Ok([p.relative_to(work).as_posix() for p in written])

    def _finalize(
        self, target: IntegrationTarget, repo: RepositoryBackend, paths: list[str]
    ) -> Result[TargetResult, UpdateError]:
        tag = self.version.tag
        committed = repo.stage_and_commit(paths, f"Update to {tag}")
        if isinstance(committed, Err):
            return Err(UpdateError(step="commit", message="failed to commit changes", detail=str(committed.error)))
        pushed = repo.push("origin", self.project.default_branch)
        if isinstance(pushed, Err):
            return Err(UpdateError(step="push", message="failed to push changes", detail=str(pushed.error)))
        self._done(target, "committed.")

        tagged = repo.tag_and_push("origin", tag)
        if isinstance(tagged, Err):
            return Err(UpdateError(step="tag", message=f"failed to tag {tag}", detail=str(tagged.error)))
        self._done(target, "tagged.")
        return Ok(TargetResult(summary=f"is up to date ({tag})"))
