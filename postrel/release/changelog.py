"""Release bookkeeping files written into integration repositories."""

from __future__ import annotations

from pathlib import Path

from postrel.platform.files import atomic_write_text
from postrel.release.version import VERSION_FILE, Version

CHANGELOG_FILE = "CHANGELOG.md"
VERSION_GO_FILE = "version.go"

# getVersion() prefers the linker-injected version and falls back to a
# pre-release of the last release for untagged builds.
_VERSION_GO_TEMPLATE = """\
package main

import (
	"strings"

	"github.com/blang/semver/v4"
)

func getVersion() semver.Version {{
	sv, err := semver.Parse(strings.TrimPrefix(version, "v"))
	if err == nil {{
		return sv
	}}

	return semver.Version{{
		Major: {major},
		Minor: {minor},
		Patch: {patch},
		Pre: []semver.PRVersion{{
			{{VersionStr: "{pre}"}},
		}},
		Build: []string{{"{build}"}},
	}}
}}
"""


def changelog_entry(version: Version, project: str) -> str:
    return f"## {version}\n\n- Bump dependencies to {project} release v{version}\n\n"


def prepend_changelog(repo_dir: Path, version: Version, project: str) -> Path:
    """Put the entry for ``version`` on top of CHANGELOG.md (newest first).

    Raises:
        OSError: If the changelog cannot be read or written.
    """
    path = repo_dir / CHANGELOG_FILE
    existing = path.read_text(encoding="utf-8")
    atomic_write_text(path, changelog_entry(version, project) + existing)
    return path


def write_version_file(repo_dir: Path, version: Version) -> Path:
    path = repo_dir / VERSION_FILE
    atomic_write_text(path, f"{version}\n")
    return path


def render_version_go(version: Version) -> str:
    fallback = Version.fallback(version.major, version.minor, version.patch)
    return _VERSION_GO_TEMPLATE.format(
        major=fallback.major,
        minor=fallback.minor,
        patch=fallback.patch,
        pre=".".join(fallback.pre),
        build=".".join(fallback.build),
    )


def write_version_go(repo_dir: Path, version: Version) -> Path:
    path = repo_dir / VERSION_GO_FILE
    atomic_write_text(path, render_version_go(version))
    return path
