from __future__ import annotations

from pathlib import Path

import pytest

from postrel.core.result import Err, Ok
from postrel.git.repository import GitFatalError, MockRepository
from postrel.output.console import MockConsole
from postrel.release.handle import RepoHandle
from postrel.release.version import Version
from postrel.release.workflow import ReleaseUpdate, UpdateState

BUILD_FILE = "srcpkgs/gopass/template"
RULES = {"version=": "version=1.2.4"}


def _checkout(tmp_path: Path) -> Path:
    path = tmp_path / BUILD_FILE
    path.parent.mkdir(parents=True)
    path.write_text("version=1.2.3\nother=true\n", encoding="utf-8")
    return path


def _update(tmp_path: Path, repo: MockRepository, console: MockConsole | None = None) -> ReleaseUpdate:
    handle = RepoHandle(
        work_dir=tmp_path,
        version=Version(1, 2, 4),
        url="https://github.com/gopasspw/gopass/archive/v1.2.4.tar.gz",
        remote="fork",
    )
    return ReleaseUpdate(handle=handle, backend=repo, console=console or MockConsole())


def test_happy_path(tmp_path: Path) -> None:
    build = _checkout(tmp_path)
    repo = MockRepository(path=tmp_path)
    console = MockConsole()

    result = _update(tmp_path, repo, console).run(BUILD_FILE, RULES)

    assert result == Ok(UpdateState.FINALIZED)
    assert build.read_text(encoding="utf-8") == "version=1.2.4\nother=true\n"
    assert repo.current == "gopass-1.2.4"
    assert repo.commits == [
        (
            (BUILD_FILE,),
            "gopass: update to 1.2.4\n"
            "Note: This is an auto-generated change as part of the gopass release process.\n",
        )
    ]
    assert repo.pushed == ["fork/gopass-1.2.4"]
    assert [m for m in console.messages if m.startswith("OK ")] == [
        "OK Prepared",
        "OK Built",
        "OK Finalized",
    ]


def test_prepare_order(tmp_path: Path) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path)

    _update(tmp_path, repo).prepare()

    assert repo.calls == ["checkout", "is_clean", "pull", "create_branch"]


def test_dirty_tree_stops_before_pull(tmp_path: Path) -> None:
    build = _checkout(tmp_path)
    repo = MockRepository(path=tmp_path, clean=False)
    update = _update(tmp_path, repo)

    result = update.run(BUILD_FILE, RULES)

    assert isinstance(result, Err)
    assert result.error.step == "clean"
    assert update.state is UpdateState.FAILED
    assert "pull" not in repo.calls
    assert "gopass-1.2.4" not in repo.branches
    assert build.read_text(encoding="utf-8") == "version=1.2.3\nother=true\n"


def test_checkout_failure(tmp_path: Path) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path, fail={"checkout"})

    result = _update(tmp_path, repo).run(BUILD_FILE, RULES)

    assert isinstance(result, Err)
    assert result.error.step == "checkout"
    assert "checkout failed (mock)" in str(result.error)
    assert repo.calls == ["checkout"]


def test_pull_failure(tmp_path: Path) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path, fail={"pull"})

    result = _update(tmp_path, repo).run(BUILD_FILE, RULES)

    assert isinstance(result, Err)
    assert result.error.step == "pull"
    assert "create_branch" not in repo.calls


def test_rerun_recreates_stale_branch_once(tmp_path: Path) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path, branches={"gopass-1.2.4"})

    result = _update(tmp_path, repo).run(BUILD_FILE, RULES)

    assert isinstance(result, Ok)
    assert repo.calls.count("delete_branch") == 1
    assert repo.calls.count("create_branch") == 2
    assert repo.pushed == ["fork/gopass-1.2.4"]


def test_second_run_same_version_succeeds(tmp_path: Path) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path)

    assert isinstance(_update(tmp_path, repo).run(BUILD_FILE, RULES), Ok)
    repo.current = repo.default_branch
    assert isinstance(_update(tmp_path, repo).run(BUILD_FILE, RULES), Ok)

    assert repo.pushed == ["fork/gopass-1.2.4", "fork/gopass-1.2.4"]


def test_branch_retry_failure(tmp_path: Path) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path, fail={"create_branch"})

    result = _update(tmp_path, repo).run(BUILD_FILE, RULES)

    assert isinstance(result, Err)
    assert result.error.step == "branch"
    assert repo.calls.count("create_branch") == 2


def test_delete_stale_branch_failure(tmp_path: Path) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path, branches={"gopass-1.2.4"}, fail={"delete_branch"})

    result = _update(tmp_path, repo).run(BUILD_FILE, RULES)

    assert isinstance(result, Err)
    assert result.error.step == "branch"
    assert "delete stale branch" in result.error.message


def test_no_matching_rule_still_finalizes(tmp_path: Path) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path)
    console = MockConsole()

    result = _update(tmp_path, repo, console).run(BUILD_FILE, {"checksum=": "checksum=abc"})

    assert isinstance(result, Ok)
    assert console.find("no rule matched")


def test_missing_build_file(tmp_path: Path) -> None:
    repo = MockRepository(path=tmp_path)

    result = _update(tmp_path, repo).run(BUILD_FILE, RULES)

    assert isinstance(result, Err)
    assert result.error.step == "patch"
    assert repo.commits == []


@pytest.mark.parametrize(("fail", "step"), [("commit", "commit"), ("push", "push")])
def test_finalize_failures(tmp_path: Path, fail: str, step: str) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path, fail={fail})
    update = _update(tmp_path, repo)

    result = update.run(BUILD_FILE, RULES)

    assert isinstance(result, Err)
    assert result.error.step == step
    assert update.state is UpdateState.FAILED


def test_steps_must_run_in_order(tmp_path: Path) -> None:
    _checkout(tmp_path)
    update = _update(tmp_path, MockRepository(path=tmp_path))

    early = update.finalize(BUILD_FILE)

    assert isinstance(early, Err)
    assert early.error.step == "invalid_state"
    assert isinstance(update.prepare(), Err)


def test_git_fatal_error_propagates(tmp_path: Path) -> None:
    _checkout(tmp_path)
    repo = MockRepository(path=tmp_path, status_broken=True)

    with pytest.raises(GitFatalError):
        _update(tmp_path, repo).run(BUILD_FILE, RULES)
