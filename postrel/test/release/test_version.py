from __future__ import annotations

from pathlib import Path

import pytest

from postrel.core.result import Err, Ok
from postrel.release.version import Version, branch_name, parse_version, read_version_file


@pytest.mark.parametrize("text", ["0.0.0", "1.2.3", "1.15.10", "10.0.1"])
def test_round_trip(text: str) -> None:
    v = parse_version(text)
    assert v is not None
    assert str(v) == text


def test_leading_v_and_whitespace() -> None:
    assert parse_version("v1.2.3\n") == Version(1, 2, 3)


def test_pre_and_build() -> None:
    v = parse_version("1.2.3-rc.1+build.5")
    assert v == Version(1, 2, 3, pre=("rc", "1"), build=("build", "5"))
    assert str(v) == "1.2.3-rc.1+build.5"
    assert v is not None and v.tag == "v1.2.3-rc.1+build.5"


@pytest.mark.parametrize("text", ["", "1.2", "1.2.3.4", "01.2.3", "a.b.c", "1.2.3-"])
def test_invalid(text: str) -> None:
    assert parse_version(text) is None


def test_ordering() -> None:
    ordered = [
        "1.0.0-alpha",
        "1.0.0-alpha.1",
        "1.0.0-alpha.beta",
        "1.0.0-beta",
        "1.0.0-beta.2",
        "1.0.0-beta.11",
        "1.0.0-rc.1",
        "1.0.0",
        "1.0.1",
        "1.1.0",
        "2.0.0",
    ]
    versions = [parse_version(t) for t in ordered]
    assert all(v is not None for v in versions)
    assert sorted(reversed(versions)) == versions  # type: ignore[type-var]


def test_build_metadata_ignored_for_ordering() -> None:
    a = Version(1, 0, 0, build=("a",))
    b = Version(1, 0, 0, build=("b",))
    assert not a < b
    assert not b < a


def test_bumps_and_fallback() -> None:
    v = Version(1, 15, 3)
    assert v.bump_patch() == Version(1, 15, 4)
    assert v.bump_minor() == Version(1, 16, 0)
    assert str(Version.fallback(1, 15, 3)) == "1.15.3-git+HEAD"


def test_branch_name_is_pure() -> None:
    a = parse_version("v1.2.3")
    b = parse_version("1.2.3")
    assert a is not None and b is not None
    assert branch_name(a, "gopass") == branch_name(b, "gopass") == "gopass-1.2.3"


def test_read_version_file(tmp_path: Path) -> None:
    path = tmp_path / "VERSION"
    path.write_text("1.15.14\n", encoding="utf-8")
    result = read_version_file(path)
    assert isinstance(result, Ok)
    assert result.value == Version(1, 15, 14)


def test_read_version_file_invalid(tmp_path: Path) -> None:
    path = tmp_path / "VERSION"
    path.write_text("next\n", encoding="utf-8")
    result = read_version_file(path)
    assert isinstance(result, Err)
    assert "invalid version" in result.error.message


def test_read_version_file_missing(tmp_path: Path) -> None:
    result = read_version_file(tmp_path / "VERSION")
    assert isinstance(result, Err)
    assert result.error.path == tmp_path / "VERSION"
