from __future__ import annotations

import json
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from time import sleep
from typing import Protocol

from postrel.core.result import Err, Ok, Result
from postrel.core.structured import as_obj_list, as_str_dict, get_str
from postrel.output.console import ConsoleProtocol, Style
from postrel.platform.process import ProcessError
from postrel.platform.process import run as run_process
from postrel.release.errors import ReleaseError
from postrel.release.version import Version

GH_TIMEOUT_SECONDS = 60.0
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0

_MILESTONE_MONTH = timedelta(days=30)

_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "http 429",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)


@dataclass(frozen=True, slots=True)
class PullRequestRequest:
    """A pull request from ``head`` (``user:branch``) into ``owner/repo``."""

    owner: str
    repo: str
    title: str
    head: str
    base: str
    body: str
    maintainer_can_modify: bool = True

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


class Submitter(Protocol):
    def open_pull_request(self, request: PullRequestRequest) -> Result[str, ReleaseError]: ...


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def _is_transient(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


def milestone_schedule(next_version: Version) -> list[tuple[str, int]]:
    """Milestones to file after a release: title and due offset in months.

    The next patch is due in a month, the one after in two, and the next
    minor release is a long-range placeholder.
    """
    after_next = next_version.bump_patch()
    return [
        (str(next_version), 1),
        (str(after_next), 2),
        (str(after_next.bump_minor()), 90),
    ]


class GitHubClient:
    """GitHub access through the ``gh`` CLI, authenticated with an explicit token.

    Creation calls (milestones, pull requests) are attempted once; only the
    idempotent milestone listing retries on transient network errors.
    """

    def __init__(
        self,
        *,
        token: str,
        owner: str,
        repo: str,
        cwd: Path,
        console: ConsoleProtocol,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.cwd = cwd
        self.console = console
        self._env = {"GH_TOKEN": token}

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _api(
        self, args: Sequence[str], *, retry_attempts: int = 1
    ) -> Result[object, ProcessError | ReleaseError]:
        cmd = ["gh", "api", *args]
        attempts = max(1, retry_attempts)
        result = run_process(cmd, cwd=self.cwd, env=self._env, timeout=GH_TIMEOUT_SECONDS)
        for attempt in range(1, attempts):
            if isinstance(result, Ok) or not _is_transient(result.error):
                break
            sleep(GH_READ_RETRY_DELAY_SECONDS * attempt)
            result = run_process(cmd, cwd=self.cwd, env=self._env, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return result

        try:
            obj: object = json.loads(result.value or "null")
        except json.JSONDecodeError as e:
            return Err(
                ReleaseError(
                    kind="invalid_response",
                    message=f"gh api returned invalid JSON: {e}",
                    hint=args[-1] if args else None,
                )
            )
        return Ok(obj)

    def list_milestones(self) -> Result[list[str], ReleaseError]:
        """Titles of all milestones, open and closed, across every page."""
        endpoint = f"repos/{self.slug}/milestones?state=all&per_page=100"
        result = self._api(["--paginate", "--slurp", endpoint], retry_attempts=GH_READ_RETRY_ATTEMPTS)
        if isinstance(result, Err):
            return Err(_as_release_error(result.error, "failed to list milestones", endpoint))

        # --slurp wraps the pages in an outer array
        pages = as_obj_list(result.value)
        if pages is None:
            return Err(ReleaseError(kind="invalid_response", message="unexpected milestones payload"))
        items: list[object] = []
        for page in pages:
            raw = as_obj_list(page)
            if raw is None:
                return Err(ReleaseError(kind="invalid_response", message="unexpected milestones payload"))
            items.extend(raw)

        titles: list[str] = []
        for item in items:
            d = as_str_dict(item)
            if d is None:
                continue
            title = get_str(d, "title")
            if title is not None:
                titles.append(title)
        return Ok(titles)

    def create_milestone(
        self, title: str, due: datetime, existing: Sequence[str]
    ) -> Result[bool, ReleaseError]:
        """Create ``title`` unless it exists. Returns True if it was created."""
        if title in existing:
            self.console.warning(f"Milestone {title} exists")
            return Ok(False)

        due_on = due.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        endpoint = f"repos/{self.slug}/milestones"
        result = self._api(
            ["-X", "POST", endpoint, "-f", f"title={title}", "-f", f"due_on={due_on}"]
        )
        if isinstance(result, Err):
            return Err(_as_release_error(result.error, f"failed to create milestone {title}", endpoint))

        self.console.success(f"Milestone {title} created")
        return Ok(True)

    def create_milestones(
        self, next_version: Version, *, now: datetime | None = None
    ) -> Result[list[str], ReleaseError]:
        """File the milestone schedule for ``next_version``; returns created titles."""
        existing = self.list_milestones()
        if isinstance(existing, Err):
            return existing

        start = now or datetime.now(UTC)
        created: list[str] = []
        for title, months in milestone_schedule(next_version):
            result = self.create_milestone(title, start + months * _MILESTONE_MONTH, existing.value)
            if isinstance(result, Err):
                return result
            if result.value:
                created.append(title)
        return Ok(created)

    def open_pull_request(self, request: PullRequestRequest) -> Result[str, ReleaseError]:
        """Open ``request`` and return the PR's web URL."""
        endpoint = f"repos/{request.slug}/pulls"
        args = [
            "-X",
            "POST",
            endpoint,
            "-f",
            f"title={request.title}",
            "-f",
            f"head={request.head}",
            "-f",
            f"base={request.base}",
            "-f",
            f"body={request.body}",
            "-F",
            f"maintainer_can_modify={'true' if request.maintainer_can_modify else 'false'}",
        ]
        result = self._api(args)
        if isinstance(result, Err):
            error = result.error
            self.console.error(f"Creating GitHub PR failed: {error}")
            self.console.print(f"Request: {request}", Style.DIM)
            if isinstance(error, ProcessError):
                self.console.print(f"Response: {error.detail}", Style.DIM)
            return Err(_as_release_error(error, "failed to create pull request", request.slug))

        data = as_str_dict(result.value)
        url = get_str(data, "html_url") if data is not None else None
        if url is None:
            return Err(
                ReleaseError(
                    kind="invalid_response",
                    message="pull request payload has no html_url",
                    hint=request.slug,
                )
            )
        self.console.success(f"GitHub PR created: {url}")
        return Ok(url)


def _as_release_error(error: ProcessError | ReleaseError, message: str, hint: str) -> ReleaseError:
    if isinstance(error, ReleaseError):
        return error
    return ReleaseError(kind="gh_failed", message=message, hint=error.stderr.strip() or hint)
