from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from shipit.platform.files import atomic_write_bytes, atomic_write_text


def test_atomic_write_text_creates_parent_dirs(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "Cargo.toml"
    atomic_write_text(path, 'version = "1.0.0"\n')

    assert path.read_text(encoding="utf-8") == 'version = "1.0.0"\n'


def test_atomic_write_text_keeps_crlf(tmp_path: Path) -> None:
    path = tmp_path / "Cargo.toml"
    atomic_write_text(path, '[package]\r\nversion = "1.0.0"\r\n')

    assert path.read_bytes() == b'[package]\r\nversion = "1.0.0"\r\n'


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_atomic_write_bytes_preserves_mode(tmp_path: Path) -> None:
    path = tmp_path / "script.sh"
    path.write_bytes(b"old")
    path.chmod(0o755)

    atomic_write_bytes(path, b"new")

    assert path.read_bytes() == b"new"
    assert stat.S_IMODE(path.stat().st_mode) == 0o755


def test_atomic_write_cleans_temp_file_on_replace_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    path = tmp_path / "Cargo.toml"

    def fail_replace(_src: Path, _dst: Path) -> None:
        raise OSError("replace failed")

    monkeypatch.setattr(os, "replace", fail_replace)

    with pytest.raises(OSError, match="replace failed"):
        atomic_write_bytes(path, b"payload")

    assert list(tmp_path.iterdir()) == []
