"""Prepare -> Patch -> Finalize for one downstream packaging repository.

The update is re-entrant: running it again for the same version after a
crash finds the stale release branch, deletes it and cuts it again, instead
of getting stuck on "branch already exists".

Usage:
    update = ReleaseUpdate(handle=handle, backend=GitRepository(handle.work_dir), console=console)
    match update.run("srcpkgs/gopass/template", rules):
        case Ok(_):
            print("ready for PR")
        case Err(e):
            print(f"{e.step}: {e}")
"""

from __future__ import annotations

from enum import Enum

from postrel.core.result import Err, Ok, Result
from postrel.git.repository import RepositoryBackend
from postrel.output.console import ConsoleProtocol, Style
from postrel.release.errors import UpdateError, UpdateStep
from postrel.release.handle import RepoHandle
from postrel.release.patch import PatchReport, PatchRules, apply_rules

__all__ = ["ReleaseUpdate", "UpdateState"]


class UpdateState(Enum):
    UNINITIALIZED = "uninitialized"
    PREPARED = "prepared"
    PATCHED = "patched"
    FINALIZED = "finalized"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class ReleaseUpdate:
    """Drives one RepositoryBackend to a pushed release branch.

    Once any step fails the update is ``FAILED`` for good; build a new
    ReleaseUpdate (and handle) to try again.
    """

    def __init__(
        self,
        *,
        handle: RepoHandle,
        backend: RepositoryBackend,
        console: ConsoleProtocol,
    ) -> None:
        self.handle = handle
        self.backend = backend
        self.console = console
        self.state = UpdateState.UNINITIALIZED

    def _fail(self, step: UpdateStep, message: str, detail: object = None) -> Err[UpdateError]:
        self.state = UpdateState.FAILED
        return Err(UpdateError(step=step, message=message, detail=str(detail) if detail else None))

    def _require(self, expected: UpdateState, action: str) -> Err[UpdateError] | None:
        if self.state is expected:
            return None
        return self._fail("invalid_state", f"cannot {action} while {self.state}")

    def prepare(self) -> Result[None, UpdateError]:
        """Check out the default branch, verify it is clean, pull, cut the release branch."""
        if (bad := self._require(UpdateState.UNINITIALIZED, "prepare")) is not None:
            return bad

        self.console.print("🌟 Running prepare ...", Style.DIM)
        branch = self.handle.branch

        checkout = self.backend.checkout_default()
        if isinstance(checkout, Err):
            return self._fail("checkout", "checkout failed", checkout.error)

        # A dirty tree is never stashed or reset: it may hold unrelated local work.
        if not self.backend.is_clean():
            return self._fail("clean", "working tree dirty", self.backend.path)

        pulled = self.backend.pull()
        if isinstance(pulled, Err):
            return self._fail("pull", "pull failed", pulled.error)

        created = self.backend.create_branch(branch)
        if isinstance(created, Err):
            self.console.print(f"branch {branch} exists, recreating", Style.DIM)
            deleted = self.backend.delete_branch(branch)
            if isinstance(deleted, Err):
                return self._fail("branch", f"failed to delete stale branch {branch}", deleted.error)
            created = self.backend.create_branch(branch)
            if isinstance(created, Err):
                return self._fail("branch", f"failed to create branch {branch}", created.error)

        self.state = UpdateState.PREPARED
        self.console.success("Prepared")
        return Ok(None)

    def patch(self, build_file: str, rules: PatchRules) -> Result[PatchReport, UpdateError]:
        """Apply ``rules`` to ``build_file`` (relative to the working directory)."""
        if (bad := self._require(UpdateState.PREPARED, "patch")) is not None:
            return bad

        result = apply_rules(self.handle.work_dir / build_file, rules)
        if isinstance(result, Err):
            return self._fail("patch", f"failed to patch {build_file}", result.error)

        report = result.value
        if not report.changed:
            self.console.warning(f"no rule matched in {build_file}")
        self.state = UpdateState.PATCHED
        self.console.success("Built")
        return Ok(report)

    def finalize(self, build_file: str) -> Result[None, UpdateError]:
        """Commit exactly ``build_file`` and push the release branch."""
        if (bad := self._require(UpdateState.PATCHED, "finalize")) is not None:
            return bad

        self.console.print("🌟 Running finalize ...", Style.DIM)
        committed = self.backend.stage_and_commit([build_file], self.handle.commit_message)
        if isinstance(committed, Err):
            return self._fail("commit", f"git commit {build_file} failed", committed.error)

        pushed = self.backend.push(self.handle.remote, self.handle.branch)
        if isinstance(pushed, Err):
            return self._fail(
                "push",
                f"git push {self.handle.remote} {self.handle.branch} failed",
                pushed.error,
            )

        self.state = UpdateState.FINALIZED
        self.console.success("Finalized")
        return Ok(None)

    def run(self, build_file: str, rules: PatchRules) -> Result[UpdateState, UpdateError]:
        prepared = self.prepare()
        if isinstance(prepared, Err):
            return prepared
        patched = self.patch(build_file, rules)
        if isinstance(patched, Err):
            return patched
        finalized = self.finalize(build_file)
        if isinstance(finalized, Err):
            return finalized
        return Ok(self.state)
