from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

UpdateStep = Literal[
    "checkout",
    "clean",
    "pull",
    "branch",
    "patch",
    "commit",
    "push",
    "tag",
    "command",
    "write",
    "artifacts",
    "invalid_state",
    "unexpected",
]


@dataclass(frozen=True, slots=True)
class UpdateError:
    """A downstream repository update stopped at ``step``."""

    step: UpdateStep
    message: str
    detail: str | None = None

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """A GitHub API call failed."""

    kind: Literal[
        "gh_missing",
        "gh_failed",
        "invalid_response",
    ]
    message: str
    hint: str | None = None

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} ({self.hint})"
        return self.message
