from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from postrel.core.config import ProjectConfig
from postrel.core.result import Err, Ok, Result
from postrel.git.repository import MockRepository
from postrel.output.console import MockConsole
from postrel.platform.process import ProcessError
from postrel.release import integrations as int_mod
from postrel.release.integrations import (
    IntegrationRunner,
    IntegrationTarget,
    detect_go_version,
    integration_targets,
    update_workflows,
)
from postrel.release.version import Version

VERSION = Version(1, 15, 14)

WORKFLOW = """\
jobs:
  build:
    steps:
      - uses: actions/setup-go@v5
        with:
          go-version: 1.21
"""


class FakeCommands:
    def __init__(self, fail: str | None = None) -> None:
        self.fail = fail
        self.calls: list[tuple[list[str], Path]] = []

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        del env
        del timeout
        self.calls.append((cmd, cwd))
        if self.fail is not None and " ".join(cmd).startswith(self.fail):
            return Err(ProcessError(tuple(cmd), 2, "", f"{cmd[0]}: boom"))
        if cmd == ["go", "env", "GOVERSION"]:
            return Ok("go1.22.5\n")
        return Ok("")


def _integration(tmp_path: Path) -> tuple[Path, IntegrationTarget]:
    source = tmp_path / "gopass"
    source.mkdir()
    (source / ".golangci.yml").write_text("linters:\n  enable-all: true\n", encoding="utf-8")

    work = tmp_path / "gopass-hibp"
    (work / ".github" / "workflows").mkdir(parents=True)
    (work / ".github" / "workflows" / "build.yml").write_text(WORKFLOW, encoding="utf-8")
    (work / "CHANGELOG.md").write_text("## 1.15.13\n\n- Old\n", encoding="utf-8")
    return source, IntegrationTarget(name="gopass-hibp", work_dir=work)


def _runner(source: Path, repo: MockRepository, console: MockConsole) -> IntegrationRunner:
    return IntegrationRunner(
        project=ProjectConfig(),
        version=VERSION,
        source_root=source,
        go_version="1.22",
        console=console,
        backend_factory=lambda _path: repo,
    )


def test_integration_targets_are_siblings(tmp_path: Path) -> None:
    targets = integration_targets(("a", "b"), source_root=tmp_path / "gopass")
    assert [t.work_dir for t in targets] == [tmp_path.resolve() / "a", tmp_path.resolve() / "b"]


def test_detect_go_version(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(int_mod, "run_process", FakeCommands())
    assert detect_go_version(tmp_path) == Ok("1.22")


def test_detect_go_version_garbage(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake(cmd: list[str], cwd: Path, env=None, *, timeout=None) -> Result[str, ProcessError]:
        return Ok("devel\n")

    monkeypatch.setattr(int_mod, "run_process", fake)
    assert isinstance(detect_go_version(tmp_path), Err)


def test_update_workflows(tmp_path: Path) -> None:
    workflows = tmp_path / ".github" / "workflows"
    workflows.mkdir(parents=True)
    (workflows / "build.yml").write_text(WORKFLOW, encoding="utf-8")
    (workflows / "other.yml").write_text("on: push\n", encoding="utf-8")

    changed = update_workflows(tmp_path, "1.22")

    assert changed == [workflows / "build.yml"]
    assert "go-version: 1.22\n" in (workflows / "build.yml").read_text(encoding="utf-8")
    assert update_workflows(tmp_path, "1.22") == []


def test_update_workflows_without_directory(tmp_path: Path) -> None:
    assert update_workflows(tmp_path, "1.22") == []


def test_full_update(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source, target = _integration(tmp_path)
    (target.work_dir / "go.mod").write_text("module github.com/gopasspw/gopass-hibp\n", encoding="utf-8")
    commands = FakeCommands()
    monkeypatch.setattr(int_mod, "run_process", commands)
    repo = MockRepository(path=target.work_dir)
    console = MockConsole()

    result = _runner(source, repo, console)(target)

    assert isinstance(result, Ok)
    assert [c[0] for c in commands.calls] == [
        ["make", "upgrade"],
        ["go", "get", "github.com/gopasspw/gopass@v1.15.14"],
        ["go", "mod", "edit", "-go=1.22"],
    ]
    assert all(c[1] == target.work_dir for c in commands.calls)

    work = target.work_dir
    assert (work / ".golangci.yml").read_text(encoding="utf-8") == "linters:\n  enable-all: true\n"
    assert (work / "VERSION").read_text(encoding="utf-8") == "1.15.14\n"
    assert "Patch: 14," in (work / "version.go").read_text(encoding="utf-8")
    assert (work / "CHANGELOG.md").read_text(encoding="utf-8").startswith("## 1.15.14\n")
    assert "go-version: 1.22" in (work / ".github" / "workflows" / "build.yml").read_text(
        encoding="utf-8"
    )

    staged = (
        ".golangci.yml",
        "go.mod",
        ".github/workflows/build.yml",
        "VERSION",
        "version.go",
        "CHANGELOG.md",
    )
    assert repo.commits == [(staged, "Update to v1.15.14")]
    assert repo.pushed == ["origin/master", "origin/v1.15.14"]
    assert "v1.15.14" in repo.tags


def test_already_tagged_is_skipped(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source, target = _integration(tmp_path)
    commands = FakeCommands()
    monkeypatch.setattr(int_mod, "run_process", commands)
    repo = MockRepository(path=target.work_dir, tags={"v1.15.14"})

    result = _runner(source, repo, MockConsole())(target)

    assert isinstance(result, Ok)
    assert "already" in result.value.summary
    assert commands.calls == []
    assert repo.commits == []
    assert "pull" not in repo.calls


def test_dirty_integration_fails(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source, target = _integration(tmp_path)
    monkeypatch.setattr(int_mod, "run_process", FakeCommands())
    repo = MockRepository(path=target.work_dir, clean=False)

    result = _runner(source, repo, MockConsole())(target)

    assert isinstance(result, Err)
    assert result.error.step == "clean"
    assert "pull" not in repo.calls


def test_command_failure_stops_update(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source, target = _integration(tmp_path)
    commands = FakeCommands(fail="go get")
    monkeypatch.setattr(int_mod, "run_process", commands)
    repo = MockRepository(path=target.work_dir)

    result = _runner(source, repo, MockConsole())(target)

    assert isinstance(result, Err)
    assert result.error.step == "command"
    assert result.error.detail == "go: boom"
    assert not (target.work_dir / "VERSION").exists()
    assert repo.commits == []


def test_missing_changelog_is_write_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source, target = _integration(tmp_path)
    (target.work_dir / "CHANGELOG.md").unlink()
    monkeypatch.setattr(int_mod, "run_process", FakeCommands())
    repo = MockRepository(path=target.work_dir)

    result = _runner(source, repo, MockConsole())(target)

    assert isinstance(result, Err)
    assert result.error.step == "write"
    assert repo.commits == []


def test_undecodable_workflow_is_write_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source, target = _integration(tmp_path)
    (target.work_dir / ".github" / "workflows" / "ci.yml").write_bytes(b"go-version: 1.20\n\xff\xfe\n")
    monkeypatch.setattr(int_mod, "run_process", FakeCommands())
    repo = MockRepository(path=target.work_dir)

    result = _runner(source, repo, MockConsole())(target)

    assert isinstance(result, Err)
    assert result.error.step == "write"
    assert repo.commits == []


def test_commit_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source, target = _integration(tmp_path)
    monkeypatch.setattr(int_mod, "run_process", FakeCommands())
    repo = MockRepository(path=target.work_dir, fail={"commit"})

    result = _runner(source, repo, MockConsole())(target)

    assert isinstance(result, Err)
    assert result.error.step == "commit"
    assert repo.pushed == []


def test_tag_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source, target = _integration(tmp_path)
    monkeypatch.setattr(int_mod, "run_process", FakeCommands())
    repo = MockRepository(path=target.work_dir, fail={"tag"})

    result = _runner(source, repo, MockConsole())(target)

    assert isinstance(result, Err)
    assert result.error.step == "tag"
    assert repo.pushed == ["origin/master"]


def _git(cwd: Path, *args: str) -> str:
    done = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)
    return done.stdout


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_commit_leaves_untracked_files_alone(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    source, target = _integration(tmp_path)
    work = target.work_dir
    remote = tmp_path / "remote.git"
    _git(tmp_path, "init", "-q", "--bare", str(remote))
    _git(work, "init", "-q", "-b", "master")
    _git(work, "config", "user.email", "release@example.com")
    _git(work, "config", "user.name", "Release Bot")
    _git(work, "config", "commit.gpgsign", "false")
    _git(work, "config", "tag.gpgsign", "false")
    _git(work, "add", "CHANGELOG.md", ".github")
    _git(work, "commit", "-q", "-m", "init")
    _git(work, "remote", "add", "origin", str(remote))
    _git(work, "push", "-q", "origin", "master")
    (work / "local-notes.txt").write_text("TOKEN=abc\n", encoding="utf-8")

    monkeypatch.setattr(int_mod, "run_process", FakeCommands())
    result = IntegrationRunner(
        project=ProjectConfig(),
        version=VERSION,
        source_root=source,
        go_version="1.22",
        console=MockConsole(),
    )(target)

    assert isinstance(result, Ok)
    committed = _git(work, "show", "--name-only", "--format=", "HEAD").split()
    assert sorted(committed) == [
        ".github/workflows/build.yml",
        ".golangci.yml",
        "CHANGELOG.md",
        "VERSION",
        "version.go",
    ]
    assert "?? local-notes.txt" in _git(work, "status", "--porcelain")
    assert "v1.15.14" in _git(remote, "tag").split()
