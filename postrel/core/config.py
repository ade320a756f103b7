"""Typed configuration loading and access.

Two sources feed a post-release run:

- an optional ``postrel.toml`` describing the upstream project (which repo,
  which integrations, which distributions), and
- environment overrides for local paths and GitHub credentials.

Both are parsed into frozen dataclasses. Missing values fall back to the
defaults for gopass, which is the project this tool was written for.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_str_list, get_table

__all__ = [
    "CONFIG_FILENAME",
    "Config",
    "ConfigError",
    "Credentials",
    "DEFAULT_DISTROS",
    "DEFAULT_INTEGRATIONS",
    "Environment",
    "ProjectConfig",
    "load_config",
]

CONFIG_FILENAME = "postrel.toml"

DEFAULT_INTEGRATIONS: tuple[str, ...] = (
    "git-credential-gopass",
    "gopass-hibp",
    "gopass-jsonapi",
    "gopass-summon-provider",
)
DEFAULT_DISTROS: tuple[str, ...] = ("alpine", "homebrew", "void")

DEFAULT_HTML_DIR = "../gopasspw.github.io"

# distro -> (environment override, default working directory)
PKG_DIR_OVERRIDES: dict[str, tuple[str, str]] = {
    "alpine": ("GOPASS_ALPINE_PKG_DIR", "../repos/alpine/"),
    "homebrew": ("GOPASS_HOMEBREW_PKG_DIR", "../repos/homebrew/"),
    "void": ("GOPASS_VOID_PKG_DIR", "../repos/void/"),
}

REQUIRED_CREDENTIALS: tuple[str, ...] = ("GITHUB_TOKEN", "GITHUB_USER", "GITHUB_FORK")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when configuration cannot be loaded or is incomplete."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """The upstream project whose release is being propagated."""

    owner: str = "gopasspw"
    repo: str = "gopass"
    name: str = "gopass"
    module: str = "github.com/gopasspw/gopass"
    branch_prefix: str = "gopass"
    default_branch: str = "master"

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def release_url(self, version: str) -> str:
        """URL of the release tarball built by the release pipeline."""
        return (
            f"https://github.com/{self.slug}/releases/download/"
            f"v{version}/{self.name}-{version}.tar.gz"
        )

    def archive_url(self, version: str) -> str:
        """URL of the source archive GitHub generates for the tag."""
        return f"https://github.com/{self.slug}/archive/v{version}.tar.gz"


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    project: ProjectConfig = field(default_factory=ProjectConfig)
    integrations: tuple[str, ...] = DEFAULT_INTEGRATIONS
    distros: tuple[str, ...] = DEFAULT_DISTROS

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        project: StrDict = get_table(data, "project") or {}
        integrations: StrDict = get_table(data, "integrations") or {}
        distros: StrDict = get_table(data, "distros") or {}
        defaults = ProjectConfig()

        return cls(
            project=ProjectConfig(
                owner=get_str(project, "owner") or defaults.owner,
                repo=get_str(project, "repo") or defaults.repo,
                name=get_str(project, "name") or defaults.name,
                module=get_str(project, "module") or defaults.module,
                branch_prefix=get_str(project, "branch_prefix") or defaults.branch_prefix,
                default_branch=get_str(project, "default_branch") or defaults.default_branch,
            ),
            integrations=_str_list_or(integrations, "names", DEFAULT_INTEGRATIONS),
            distros=_str_list_or(distros, "enabled", DEFAULT_DISTROS),
        )


def _str_list_or(table: StrDict, key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    values = get_str_list(table, key)
    return default if values is None else values


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except OSError as e:
        return Err(ConfigError(f"Cannot read config: {e}", path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Config is not valid UTF-8: {e}", path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML: {e}", path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a table", path))
    return Ok(data)


def load_config(path: Path | None) -> Result[Config, ConfigError]:
    """Load configuration from a TOML file.

    A ``None`` path or a missing default file yields the built-in defaults.

    Args:
        path: Path to postrel.toml, or None.

    Returns:
        Ok(Config) on success, Err(ConfigError) if the file is unreadable
        or malformed.
    """
    if path is None or not path.exists():
        return Ok(Config())

    parsed = _parse_toml(path)
    if isinstance(parsed, Err):
        return parsed
    return Ok(Config.from_dict(parsed.value))


@dataclass(frozen=True, slots=True)
class Credentials:
    """GitHub identity used for milestones, forks and pull requests."""

    token: str
    user: str
    fork: str


@dataclass(frozen=True, slots=True)
class Environment:
    """Environment-style overrides for one run.

    Attributes:
        html_dir: Checkout of the website repository.
        pkg_dirs: Working directory per distribution.
        token: GitHub access token (GITHUB_TOKEN).
        user: GitHub user owning the fork (GITHUB_USER).
        fork: Git remote name of the fork in each packaging repo (GITHUB_FORK).
    """

    html_dir: Path
    pkg_dirs: Mapping[str, Path]
    token: str | None = None
    user: str | None = None
    fork: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> Environment:
        def value(name: str) -> str | None:
            raw = environ.get(name, "").strip()
            return raw or None

        pkg_dirs = {
            distro: Path(value(var) or default)
            for distro, (var, default) in PKG_DIR_OVERRIDES.items()
        }
        return cls(
            html_dir=Path(value("GOPASS_HTMLDIR") or DEFAULT_HTML_DIR),
            pkg_dirs=pkg_dirs,
            token=value("GITHUB_TOKEN"),
            user=value("GITHUB_USER"),
            fork=value("GITHUB_FORK"),
        )

    def pkg_dir(self, distro: str) -> Path:
        return self.pkg_dirs.get(distro, Path("../repos") / distro)

    def credentials(self) -> Result[Credentials, ConfigError]:
        """Return the GitHub credentials, or an error naming all required variables."""
        if self.token is None or self.user is None or self.fork is None:
            return Err(ConfigError(f"Please set: {', '.join(REQUIRED_CREDENTIALS)}"))
        return Ok(Credentials(token=self.token, user=self.user, fork=self.fork))
