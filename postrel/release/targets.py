"""Distribution packaging targets.

Each distribution keeps its recipe for the upstream project in a git
repository we have a fork of. Updating one means cutting a release branch,
rewriting a handful of recipe lines, pushing to the fork and, where the
distribution accepts GitHub pull requests, opening one.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from postrel.core.config import Credentials, Environment, ProjectConfig
from postrel.core.result import Err, Ok, Result
from postrel.git.repository import GitRepository, RepositoryBackend
from postrel.output.console import ConsoleProtocol
from postrel.release.checksum import ReleaseArtifacts
from postrel.release.dispatcher import TargetResult
from postrel.release.errors import UpdateError
from postrel.release.github import PullRequestRequest
from postrel.release.handle import RepoHandle
from postrel.release.patch import PatchRules
from postrel.release.version import Version
from postrel.release.workflow import ReleaseUpdate

__all__ = [
    "DISTROS",
    "DistroRunner",
    "PullRequestDestination",
    "TargetDescriptor",
    "distro_targets",
]


@dataclass(frozen=True, slots=True)
class PullRequestDestination:
    owner: str
    repo: str
    base: str = "master"


@dataclass(frozen=True, slots=True)
class TargetDescriptor:
    """One packaging recipe to bring up to date.

    Attributes:
        name: Distribution name shown in progress output.
        work_dir: Local checkout of the packaging repository.
        build_file: Recipe path relative to ``work_dir``.
        rules: Line-prefix rewrites for the recipe.
        url: Upstream artifact the recipe downloads.
        message: Commit message; derived from the version when None.
        pull_request: Where to open a PR, or None if the distribution
            does not take GitHub PRs.
    """

    name: str
    work_dir: Path
    build_file: str
    rules: PatchRules
    url: str
    message: str | None = None
    pull_request: PullRequestDestination | None = None


type DistroFactory = Callable[[ProjectConfig, Version, ReleaseArtifacts, Path], TargetDescriptor]


def _alpine(
    project: ProjectConfig, version: Version, artifacts: ReleaseArtifacts, work_dir: Path
) -> TargetDescriptor:
    name = project.name
    return TargetDescriptor(
        name="AlpineLinux",
        work_dir=work_dir,
        build_file=f"community/{name}/APKBUILD",
        rules={
            "pkgver=": f"pkgver={version}",
            "sha512sums=": f'sha512sums="{artifacts.archive.sha512}  {name}-{version}.tar.gz"',
            "source=": (
                f'source="$pkgname-$pkgver.tar.gz::https://github.com/{project.slug}'
                '/archive/v$pkgver.tar.gz"'
            ),
        },
        url=artifacts.archive_url,
        message=f"community/{name}: upgrade to {version}",
    )


def _homebrew(
    project: ProjectConfig, version: Version, artifacts: ReleaseArtifacts, work_dir: Path
) -> TargetDescriptor:
    return TargetDescriptor(
        name="Homebrew",
        work_dir=work_dir,
        build_file=f"Formula/{project.name}.rb",
        rules={
            '  url "https://github.com/': f'  url "{artifacts.release_url}"',
            '  sha256 "': f'  sha256 "{artifacts.release.sha256}"',
        },
        url=artifacts.release_url,
        pull_request=PullRequestDestination(owner="Homebrew", repo="homebrew-core"),
    )


def _void(
    project: ProjectConfig, version: Version, artifacts: ReleaseArtifacts, work_dir: Path
) -> TargetDescriptor:
    return TargetDescriptor(
        name="VoidLinux",
        work_dir=work_dir,
        build_file=f"srcpkgs/{project.name}/template",
        rules={
            "version=": f"version={version}",
            "checksum=": f"checksum={artifacts.archive.sha256}",
            "distfiles=": (
                f'distfiles="https://github.com/{project.slug}/archive/v${{version}}.tar.gz"'
            ),
        },
        url=artifacts.archive_url,
        pull_request=PullRequestDestination(owner="void-linux", repo="void-packages"),
    )


DISTROS: Mapping[str, DistroFactory] = {
    "alpine": _alpine,
    "homebrew": _homebrew,
    "void": _void,
}


def distro_targets(
    names: Sequence[str],
    *,
    project: ProjectConfig,
    version: Version,
    artifacts: ReleaseArtifacts,
    env: Environment,
) -> Result[list[TargetDescriptor], str]:
    """Build descriptors for ``names`` in the given order."""
    targets: list[TargetDescriptor] = []
    for name in names:
        factory = DISTROS.get(name)
        if factory is None:
            return Err(f"unknown distribution: {name} (known: {', '.join(DISTROS)})")
        targets.append(factory(project, version, artifacts, env.pkg_dir(name)))
    return Ok(targets)


BackendFactory = Callable[[Path], RepositoryBackend]


class DistroRunner:
    """Runs the release workflow for one TargetDescriptor.

    A fresh handle and backend are built per call and dropped afterwards.
    """

    def __init__(
        self,
        *,
        project: ProjectConfig,
        version: Version,
        credentials: Credentials,
        console: ConsoleProtocol,
        backend_factory: BackendFactory | None = None,
    ) -> None:
        self.project = project
        self.version = version
        self.credentials = credentials
        self.console = console
        self.backend_factory = backend_factory or self._git

    def _git(self, work_dir: Path) -> RepositoryBackend:
        return GitRepository(work_dir, default_branch=self.project.default_branch)

    def __call__(self, target: TargetDescriptor) -> Result[TargetResult, UpdateError]:
        handle = RepoHandle(
            work_dir=target.work_dir,
            version=self.version,
            url=target.url,
            remote=self.credentials.fork,
            project=self.project.name,
            branch_prefix=self.project.branch_prefix,
            message=target.message,
        )
        update = ReleaseUpdate(
            handle=handle,
            backend=self.backend_factory(target.work_dir),
            console=self.console,
        )
        result = update.run(target.build_file, target.rules)
        if isinstance(result, Err):
            return result

        dest = target.pull_request
        if dest is None:
            return Ok(TargetResult(summary=f"pushed {handle.branch}, ready for PR"))

        message = handle.commit_message
        return Ok(
            TargetResult(
                summary=f"pushed {handle.branch}",
                pull_request=PullRequestRequest(
                    owner=dest.owner,
                    repo=dest.repo,
                    title=message.splitlines()[0],
                    head=f"{self.credentials.user}:{handle.branch}",
                    base=dest.base,
                    body=message,
                ),
            )
        )
