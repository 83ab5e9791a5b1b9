"""Tests for git/repository.py."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from shipit.core.result import Err, Ok
from shipit.git.repository import GitError, GitRepository, MockRepository


# =============================================================================
# GitRepository (real git)
# =============================================================================


class TestGitRepository:
    def test_clean_tree(self, sandbox) -> None:
        repo = GitRepository(sandbox.work)
        assert repo.changed_tracked_files() == Ok([])
        assert repo.staged_files() == Ok([])
        assert repo.current_branch() == "main"

    def test_changed_files_respect_exclude(self, sandbox) -> None:
        (sandbox.work / "Cargo.toml").write_text('version = "9.9.9"\n', encoding="utf-8")
        (sandbox.work / "README.md").write_text("changed\n", encoding="utf-8")
        (sandbox.work / "untracked.txt").write_text("x\n", encoding="utf-8")

        repo = GitRepository(sandbox.work)
        assert repo.changed_tracked_files() == Ok(["Cargo.toml", "README.md"])
        assert repo.changed_tracked_files(exclude=["Cargo.toml"]) == Ok(["README.md"])

    def test_staged_files(self, sandbox, run_git: Callable[..., str]) -> None:
        (sandbox.work / "README.md").write_text("changed\n", encoding="utf-8")
        run_git(sandbox.work, "add", "README.md")

        assert GitRepository(sandbox.work).staged_files() == Ok(["README.md"])

    def test_tags(self, sandbox, run_git: Callable[..., str]) -> None:
        repo = GitRepository(sandbox.work)
        assert repo.local_tag_exists("v0.1.1") == Ok(True)
        assert repo.local_tag_exists("v0.1") == Ok(False)
        assert repo.remote_tag_exists("origin", "v0.1.1") == Ok(True)
        assert repo.remote_tag_exists("origin", "v0.1.2") == Ok(False)
        assert repo.latest_tag() == "v0.1.1"

        run_git(sandbox.work, "tag", "v0.1.2")
        assert repo.remote_tag_exists("origin", "v0.1.2") == Ok(False)

    def test_remote_tag_unreachable(self, sandbox, run_git: Callable[..., str]) -> None:
        run_git(sandbox.work, "remote", "add", "gone", str(sandbox.work / "missing.git"))

        result = GitRepository(sandbox.work).remote_tag_exists("gone", "v0.1.1")
        assert isinstance(result, Err)
        assert result.error.command == "ls-remote"

    def test_rev_parse_and_ancestry(self, sandbox, run_git: Callable[..., str]) -> None:
        repo = GitRepository(sandbox.work)
        first = repo.rev_parse("HEAD")
        assert isinstance(first, Ok) and first.value is not None
        assert repo.rev_parse("origin/main") == first
        assert repo.rev_parse("origin/nope") == Ok(None)

        (sandbox.work / "README.md").write_text("next\n", encoding="utf-8")
        run_git(sandbox.work, "commit", "--quiet", "-am", "next")
        second = repo.rev_parse("HEAD")
        assert isinstance(second, Ok) and second.value is not None

        assert repo.is_ancestor(first.value, second.value) == Ok(True)
        assert repo.is_ancestor(second.value, first.value) == Ok(False)

    def test_commit_tag_push(self, sandbox, run_git: Callable[..., str]) -> None:
        repo = GitRepository(sandbox.work)
        (sandbox.work / "README.md").write_text("release\n", encoding="utf-8")

        assert repo.add(["README.md"]) == Ok(None)
        sha = repo.commit("v0.1.2")
        assert isinstance(sha, Ok)
        assert repo.create_tag("v0.1.2") == Ok(None)
        assert repo.push_branch("origin", "main") == Ok(None)
        assert repo.push_tag("origin", "v0.1.2") == Ok(None)

        assert run_git(sandbox.remote, "rev-parse", "refs/heads/main") == sha.value
        assert run_git(sandbox.remote, "rev-parse", "refs/tags/v0.1.2^{commit}") == sha.value

    def test_log_oneline_since_tag(self, sandbox, run_git: Callable[..., str]) -> None:
        repo = GitRepository(sandbox.work)
        assert repo.log_oneline(since="v0.1.1", limit=10) == Ok([])

        for n in range(3):
            (sandbox.work / "README.md").write_text(f"{n}\n", encoding="utf-8")
            run_git(sandbox.work, "commit", "--quiet", "-am", f"change {n}")

        result = repo.log_oneline(since="v0.1.1", limit=2)
        assert isinstance(result, Ok)
        assert [line.split(" ", 1)[1] for line in result.value] == ["change 2", "change 1"]

    def test_remote_url_and_git_dir(self, sandbox) -> None:
        repo = GitRepository(sandbox.work)
        assert repo.remote_url("origin") == str(sandbox.remote)
        assert repo.remote_url("nope") is None
        assert repo.git_dir() == (sandbox.work / ".git").resolve()

    def test_detached_head(self, sandbox, run_git: Callable[..., str]) -> None:
        run_git(sandbox.work, "checkout", "--quiet", "--detach")
        assert GitRepository(sandbox.work).current_branch() is None


# =============================================================================
# MockRepository
# =============================================================================


class TestMockRepository:
    def test_commit_advances_history(self) -> None:
        repo = MockRepository(path=Path("/repo"))
        assert repo.commit("v1.0.0") == Ok("c1")
        assert repo.create_tag("v1.0.0") == Ok(None)
        assert repo.head == "c1"
        assert repo.local_tags == {"v1.0.0": "c1"}
        assert repo.latest_tag() == "v1.0.0"

    def test_push_updates_remote_refs(self) -> None:
        repo = MockRepository()
        repo.commit("v1.0.0")
        repo.create_tag("v1.0.0")
        repo.push_branch("origin", "main")
        repo.push_tag("origin", "v1.0.0")

        assert repo.rev_parse("origin/main") == Ok("c1")
        assert repo.remote_tag_exists("origin", "v1.0.0") == Ok(True)
        assert repo.pushed == ["origin main", "origin v1.0.0"]

    def test_ancestry_follows_history(self) -> None:
        repo = MockRepository(head="b", history=["a", "b"], remote_heads={"origin/main": "a"})
        assert repo.is_ancestor("a", "b") == Ok(True)
        assert repo.is_ancestor("b", "a") == Ok(False)
        assert repo.is_ancestor("x", "b") == Ok(False)

    def test_failure_injection(self) -> None:
        error = GitError(command="push", message="rejected")
        repo = MockRepository(failures={"push_tag": error})

        assert repo.push_tag("origin", "v1.0.0") == Err(error)
        assert repo.remote_tags == set()
        assert repo.calls == ["push_tag"]

    def test_log_since_tag(self) -> None:
        repo = MockRepository()
        repo.commit("v1.0.0")
        repo.create_tag("v1.0.0")
        repo.commit("fix")
        repo.commit("feat")

        assert repo.log_oneline(since="v1.0.0", limit=10) == Ok(["c3 commit", "c2 commit"])
        assert repo.log_oneline(since=None, limit=1) == Ok(["c3 commit"])
