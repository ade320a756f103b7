from __future__ import annotations

import os
from pathlib import Path

import pytest

from postrel.platform.files import atomic_write_text, atomic_writer


def test_atomic_write_text_creates_parent_dirs(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "index.html"
    atomic_write_text(path, "<html></html>\n")

    assert path.read_text(encoding="utf-8") == "<html></html>\n"


def test_atomic_write_text_replaces_existing_content(tmp_path: Path) -> None:
    path = tmp_path / "VERSION"
    path.write_text("1.0.0\n", encoding="utf-8")

    atomic_write_text(path, "1.0.1\n")

    assert path.read_text(encoding="utf-8") == "1.0.1\n"


def test_atomic_writer_keeps_file_mode(tmp_path: Path) -> None:
    path = tmp_path / "template"
    path.write_text("old", encoding="utf-8")
    path.chmod(0o750)

    with atomic_writer(path) as handle:
        handle.write(b"new")

    assert path.stat().st_mode & 0o777 == 0o750


def test_atomic_writer_leaves_original_when_body_raises(tmp_path: Path) -> None:
    path = tmp_path / "APKBUILD"
    path.write_text("pkgver=1.0.0\n", encoding="utf-8")

    with pytest.raises(RuntimeError):
        with atomic_writer(path) as handle:
            handle.write(b"partial")
            raise RuntimeError("interrupted")

    assert path.read_text(encoding="utf-8") == "pkgver=1.0.0\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["APKBUILD"]


def test_atomic_write_text_cleans_temp_file_on_replace_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    path = tmp_path / "CHANGELOG.md"
    path.write_text("old", encoding="utf-8")

    def fail_replace(_src: Path, _dst: Path) -> None:
        raise OSError("replace failed")

    monkeypatch.setattr(os, "replace", fail_replace)

    with pytest.raises(OSError, match="replace failed"):
        atomic_write_text(path, "payload")

    assert path.read_text(encoding="utf-8") == "old"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["CHANGELOG.md"]
