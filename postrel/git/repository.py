"""Git repository abstraction.

``RepositoryBackend`` is the narrow set of version-control primitives the
release workflow needs. ``GitRepository`` implements it by running git in
one working directory; ``MockRepository`` implements it in memory for tests.

Usage:
    repo = GitRepository(Path("../repos/void"), default_branch="master")

    if not repo.is_clean():
        print("dirty")

    match repo.create_branch("gopass-1.2.3"):
        case Ok(_):
            print("branched")
        case Err(e):
            print(f"{e.command} failed: {e.message}")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from postrel.core.result import Err, Ok, Result
from postrel.platform.process import ProcessError
from postrel.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

__all__ = [
    "GitError",
    "GitFatalError",
    "GitRepository",
    "MockRepository",
    "RepositoryBackend",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1

    def __str__(self) -> str:
        return f"git {self.command}: {self.message}"


class GitFatalError(RuntimeError):
    """The repository state cannot be determined at all.

    Raised instead of returned: a release update must not continue when it
    cannot tell whether the working tree holds someone's local changes.
    """


@runtime_checkable
class RepositoryBackend(Protocol):
    """Version-control primitives bound to one working directory."""

    @property
    def path(self) -> Path: ...

    def is_clean(self) -> bool: ...

    def checkout_default(self) -> Result[None, GitError]: ...

    def pull(self) -> Result[None, GitError]: ...

    def create_branch(self, name: str) -> Result[None, GitError]: ...

    def delete_branch(self, name: str) -> Result[None, GitError]: ...

    def stage_and_commit(self, paths: Sequence[str], message: str) -> Result[None, GitError]: ...

    def push(self, remote: str, ref: str) -> Result[None, GitError]: ...

    def tag_and_push(self, remote: str, tag: str) -> Result[None, GitError]: ...

    def has_tag(self, tag: str) -> bool: ...


class GitRepository:
    """RepositoryBackend running the git CLI.

    Attributes:
        path: Working directory every command runs in.
        default_branch: Branch checked out before a release branch is cut.
        upstream: Remote pulled from.
    """

    def __init__(
        self,
        path: Path,
        *,
        default_branch: str = "master",
        upstream: str = "origin",
    ) -> None:
        # "" and "." both mean "whatever the process cwd is"
        if not path.parts:
            raise ValueError("repository path must be set explicitly")
        self._path = path
        self.default_branch = default_branch
        self.upstream = upstream

    @property
    def path(self) -> Path:
        return self._path

    def is_clean(self) -> bool:
        """True if no tracked file has uncommitted (staged or unstaged) changes.

        Raises:
            GitFatalError: If git status cannot be run.
        """
        result = self._run(["status", "--porcelain", "--untracked-files=no"])
        match result:
            case Ok(stdout):
                return stdout.strip() == ""
            case Err(e):
                raise GitFatalError(f"git status failed in {self._path}: {e.detail}")

    def checkout_default(self) -> Result[None, GitError]:
        return self._simple(["checkout", self.default_branch], "checkout")

    def pull(self) -> Result[None, GitError]:
        # Output is captured and only surfaced through the error on failure.
        return self._simple(["pull", self.upstream, self.default_branch], "pull")

    def create_branch(self, name: str) -> Result[None, GitError]:
        return self._simple(["checkout", "-b", name], "checkout -b")

    def delete_branch(self, name: str) -> Result[None, GitError]:
        return self._simple(["branch", "-D", name], "branch -D")

    def stage_and_commit(self, paths: Sequence[str], message: str) -> Result[None, GitError]:
        if not paths:
            return Err(GitError(command="add", message="no paths to stage"))
        added = self._simple(["add", "--", *paths], "add")
        if isinstance(added, Err):
            return added
        return self._simple(["commit", "-s", "-m", message], "commit")

    def push(self, remote: str, ref: str) -> Result[None, GitError]:
        return self._simple(["push", remote, ref], "push")

    def tag_and_push(self, remote: str, tag: str) -> Result[None, GitError]:
        tagged = self._simple(["tag", "-m", f"Tag {tag}", tag], "tag")
        if isinstance(tagged, Err):
            return tagged
        return self._simple(["push", remote, tag], "push")

    def has_tag(self, tag: str) -> bool:
        result = self._run(["rev-parse", "--verify", "--quiet", f"refs/tags/{tag}"])
        return isinstance(result, Ok)

    def _simple(self, args: list[str], label: str) -> Result[None, GitError]:
        result = self._run(args)
        if isinstance(result, Err):
            return Err(self._error(label, result.error))
        return Ok(None)

    def _error(self, label: str, e: ProcessError) -> GitError:
        return GitError(
            command=label,
            message=e.stderr.strip() or e.stdout.strip() or f"git {label} failed",
            returncode=e.returncode,
        )

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS
            if command in {"fetch", "pull", "push"}
            else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", *args], cwd=self._path, timeout=timeout)


def _empty_strs() -> list[str]:
    return []


def _empty_set() -> set[str]:
    return set()


@dataclass
class MockRepository:
    """In-memory RepositoryBackend for tests.

    Branches and tags are plain sets. Set ``fail`` to make a primitive fail
    (keys: "checkout", "pull", "create_branch", "delete_branch", "commit",
    "push", "tag"); ``fail_once`` fails only the next call. ``status_broken``
    makes ``is_clean`` raise like a missing git binary would.
    """

    path: Path = Path("mock")
    default_branch: str = "master"
    clean: bool = True
    status_broken: bool = False
    branches: set[str] = field(default_factory=_empty_set)
    tags: set[str] = field(default_factory=_empty_set)
    pushed: list[str] = field(default_factory=_empty_strs)
    commits: list[tuple[tuple[str, ...], str]] = field(default_factory=list)
    fail: set[str] = field(default_factory=_empty_set)
    fail_once: set[str] = field(default_factory=_empty_set)
    calls: list[str] = field(default_factory=_empty_strs)
    current: str = ""

    def __post_init__(self) -> None:
        self.branches.add(self.default_branch)
        self.current = self.default_branch

    def _check(self, op: str) -> Result[None, GitError]:
        self.calls.append(op)
        if op in self.fail_once:
            self.fail_once.discard(op)
            return Err(GitError(command=op, message=f"{op} failed (mock)"))
        if op in self.fail:
            return Err(GitError(command=op, message=f"{op} failed (mock)"))
        return Ok(None)

    def is_clean(self) -> bool:
        self.calls.append("is_clean")
        if self.status_broken:
            raise GitFatalError("git status failed (mock)")
        return self.clean

    def checkout_default(self) -> Result[None, GitError]:
        ok = self._check("checkout")
        if isinstance(ok, Ok):
            self.current = self.default_branch
        return ok

    def pull(self) -> Result[None, GitError]:
        return self._check("pull")

    def create_branch(self, name: str) -> Result[None, GitError]:
        ok = self._check("create_branch")
        if isinstance(ok, Err):
            return ok
        if name in self.branches:
            return Err(GitError(command="checkout -b", message=f"branch '{name}' already exists"))
        self.branches.add(name)
        self.current = name
        return Ok(None)

    def delete_branch(self, name: str) -> Result[None, GitError]:
        ok = self._check("delete_branch")
        if isinstance(ok, Err):
            return ok
        if name not in self.branches:
            return Err(GitError(command="branch -D", message=f"branch '{name}' not found"))
        self.branches.discard(name)
        return Ok(None)

    def stage_and_commit(self, paths: Sequence[str], message: str) -> Result[None, GitError]:
        ok = self._check("commit")
        if isinstance(ok, Ok):
            self.commits.append((tuple(paths), message))
        return ok

    def push(self, remote: str, ref: str) -> Result[None, GitError]:
        ok = self._check("push")
        if isinstance(ok, Ok):
            self.pushed.append(f"{remote}/{ref}")
        return ok

    def tag_and_push(self, remote: str, tag: str) -> Result[None, GitError]:
        ok = self._check("tag")
        if isinstance(ok, Ok):
            self.tags.add(tag)
            self.pushed.append(f"{remote}/{tag}")
        return ok

    def has_tag(self, tag: str) -> bool:
        self.calls.append("has_tag")
        return tag in self.tags
