"""Sequential, failure-isolated iteration over downstream targets.

Each target is handed to a runner; whatever happens to one target, the
next one is still attempted. There is no retry within a pass and nothing is
persisted between passes: running the tool again is the retry, and it is
safe because every runner is idempotent for a given version.

A runner that raises fails only its own target. ``GitFatalError`` is the
exception: it means git itself is unusable and the whole run has to stop.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from postrel.core.result import Err, Result
from postrel.git.repository import GitFatalError
from postrel.output.console import ConsoleProtocol
from postrel.release.errors import ReleaseError, UpdateError
from postrel.release.github import PullRequestRequest, Submitter

__all__ = [
    "DispatchReport",
    "Dispatcher",
    "TargetOutcome",
    "TargetResult",
]


class Named(Protocol):
    @property
    def name(self) -> str: ...


@dataclass(frozen=True, slots=True)
class TargetResult:
    """What a runner reports for a target it brought up to date."""

    summary: str
    pull_request: PullRequestRequest | None = None


@dataclass(frozen=True, slots=True)
class TargetOutcome:
    name: str
    summary: str | None = None
    error: UpdateError | None = None
    pr_url: str | None = None
    pr_error: ReleaseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class DispatchReport:
    outcomes: tuple[TargetOutcome, ...]

    @property
    def succeeded(self) -> list[TargetOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[TargetOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


class Dispatcher[T: Named]:
    """Runs ``runner`` over ``targets`` in order.

    Args:
        targets: Targets to update, in order.
        runner: Brings one target up to date.
        console: Progress output.
        submitter: Opens the pull request a runner asks for, if any.
        label: Noun used in progress messages ("Distro", "Integration").
    """

    def __init__(
        self,
        targets: Sequence[T],
        runner: Callable[[T], Result[TargetResult, UpdateError]],
        *,
        console: ConsoleProtocol,
        submitter: Submitter | None = None,
        label: str = "Target",
    ) -> None:
        self.targets = tuple(targets)
        self.runner = runner
        self.console = console
        self.submitter = submitter
        self.label = label

    def dispatch(self) -> DispatchReport:
        outcomes: list[TargetOutcome] = []
        for target in self.targets:
            outcomes.append(self._dispatch_one(target))
        return DispatchReport(outcomes=tuple(outcomes))

    def _dispatch_one(self, target: T) -> TargetOutcome:
        name = target.name
        self.console.newline()
        self.console.header(f"Updating: {name} ...")

        try:
            result = self.runner(target)
        except GitFatalError:
            raise
        except Exception as e:  # noqa: BLE001
            result = Err(UpdateError(step="unexpected", message=type(e).__name__, detail=str(e)))
        if isinstance(result, Err):
            self.console.error(f"Updating {name} failed at {result.error.step}: {result.error}")
            return TargetOutcome(name=name, error=result.error)

        done = result.value
        self.console.success(f"{self.label} {name}: {done.summary}")
        if done.pull_request is None or self.submitter is None:
            return TargetOutcome(name=name, summary=done.summary)

        # The pushed branch stays usable for a manual PR if this fails.
        pr = self.submitter.open_pull_request(done.pull_request)
        if isinstance(pr, Err):
            self.console.error(f"{name}: pull request not opened: {pr.error}")
            return TargetOutcome(name=name, summary=done.summary, pr_error=pr.error)
        return TargetOutcome(name=name, summary=done.summary, pr_url=pr.value)
