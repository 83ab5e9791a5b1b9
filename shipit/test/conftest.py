"""Shared fixtures: throwaway git repositories with a bare remote."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

MANIFEST = """\
[package]
name = "demo"
version = "0.1.1"
edition = "2021"

[dependencies]
serde = { version = "1.0" }
"""


def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout.strip()


@dataclass(frozen=True, slots=True)
class GitSandbox:
    work: Path
    remote: Path


@pytest.fixture
def git_identity(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Deterministic identity and no user/system config leaking in."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Release Bot")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "release@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Release Bot")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "release@example.com")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")


@pytest.fixture
def sandbox(tmp_path: Path, git_identity: None) -> GitSandbox:
    """A working tree on ``main`` at v0.1.1, pushed to a bare ``origin``."""
    remote = tmp_path / "origin.git"
    work = tmp_path / "work"
    git(tmp_path, "init", "--quiet", "--bare", "-b", "main", str(remote))
    git(tmp_path, "init", "--quiet", "-b", "main", str(work))
    git(work, "remote", "add", "origin", str(remote))

    (work / "Cargo.toml").write_text(MANIFEST, encoding="utf-8")
    (work / "README.md").write_text("demo\n", encoding="utf-8")
    (work / "shipit.toml").write_text(
        '[release]\nlockfile = ""\nbuild_check = []\nrepo_slug = "octo/demo"\n',
        encoding="utf-8",
    )
    git(work, "add", ".")
    git(work, "commit", "--quiet", "-m", "v0.1.1")
    git(work, "tag", "v0.1.1")
    git(work, "push", "--quiet", "origin", "main", "v0.1.1")
    return GitSandbox(work=work, remote=remote)


@pytest.fixture
def run_git() -> Callable[..., str]:
    return git
