from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from postrel.release.version import Version, branch_name


@dataclass(frozen=True, slots=True)
class RepoHandle:
    """One downstream checkout being moved to a new upstream version.

    Attributes:
        work_dir: The checkout; every git command runs here.
        version: Upstream version being propagated.
        url: Upstream artifact the packaging recipe points at.
        remote: Remote the release branch is pushed to (usually a fork).
        project: Upstream project name, used in the default commit message.
        branch_prefix: Release branches are named <branch_prefix>-<version>.
        message: Commit message override.
    """

    work_dir: Path
    version: Version
    url: str
    remote: str
    project: str = "gopass"
    branch_prefix: str = "gopass"
    message: str | None = None

    @property
    def branch(self) -> str:
        return branch_name(self.version, self.branch_prefix)

    @property
    def commit_message(self) -> str:
        if self.message:
            return self.message
        return (
            f"{self.project}: update to {self.version}\n"
            f"Note: This is an auto-generated change as part of the {self.project} "
            "release process.\n"
        )
