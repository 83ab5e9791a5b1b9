from __future__ import annotations

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err, Ok
from shipit.git.repository import GitError, MockRepository
from shipit.output.console import MockConsole
from shipit.services.release.decisions import ScriptedDecisions
from shipit.services.release.preflight import PreflightValidator


def _validator(
    repo: MockRepository,
    *,
    decisions: ScriptedDecisions | None = None,
    console: MockConsole | None = None,
) -> PreflightValidator:
    return PreflightValidator(
        repo=repo,
        config=ReleaseConfig(),
        decisions=decisions or ScriptedDecisions(),
        console=console or MockConsole(),
    )


def _synced_repo(**kwargs: object) -> MockRepository:
    repo = MockRepository(**kwargs)  # type: ignore[arg-type]
    repo.remote_heads.setdefault("origin/main", repo.head)
    return repo


def test_clean_repository_passes() -> None:
    result = _validator(_synced_repo()).run("v0.1.2")

    assert isinstance(result, Ok)
    assert result.value.branch == "main"
    assert result.value.local_head == "c0"
    assert result.value.remote_head == "c0"
    assert result.value.remote_is_ancestor


def test_manifest_and_lockfile_changes_are_allowed() -> None:
    repo = _synced_repo(dirty=["Cargo.toml", "Cargo.lock"])
    assert isinstance(_validator(repo).run("v0.1.2"), Ok)


def test_unrelated_tracked_change_is_rejected() -> None:
    console = MockConsole()
    repo = _synced_repo(dirty=["Cargo.toml", "src/main.rs"])

    result = _validator(repo, console=console).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "dirty_tree"
    assert result.error.category == "precondition"
    assert console.find("modified: src/main.rs")
    assert not console.find("modified: Cargo.toml")


def test_staged_changes_are_rejected() -> None:
    result = _validator(_synced_repo(staged=["README.md"])).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "staged_changes"


def test_existing_local_tag_is_rejected() -> None:
    repo = _synced_repo(local_tags={"v0.1.2": "c0"})

    result = _validator(repo).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "local_tag_exists"
    assert result.error.hint == "Delete it with: git tag -d v0.1.2"


def test_remote_only_tag_is_rejected() -> None:
    repo = _synced_repo(remote_tags={"v0.1.2"})

    result = _validator(repo).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "remote_tag_exists"


def test_tag_fetch_failure_only_warns() -> None:
    console = MockConsole()
    repo = _synced_repo()
    repo.failures["fetch"] = GitError(command="fetch", message="offline")

    result = _validator(repo, console=console).run("v0.1.2")

    # The ancestry check needs a real fetch, so the run still fails, later.
    assert isinstance(result, Err)
    assert result.error.kind == "remote_unreachable"
    assert console.find("warning: git fetch --tags origin failed: offline")


def test_unreachable_remote_is_rejected() -> None:
    repo = _synced_repo()
    repo.failures["remote_tag_exists"] = GitError(command="ls-remote", message="no route")

    result = _validator(repo).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "remote_unreachable"
    assert result.error.hint == "no route"


def test_other_branch_asks_and_continues() -> None:
    decisions = ScriptedDecisions.of(confirms=[True])
    repo = _synced_repo(branch="feature")

    result = _validator(repo, decisions=decisions).run("v0.1.2")

    assert isinstance(result, Ok)
    assert result.value.branch == "feature"
    assert decisions.asked == ["Continue anyway?"]


def test_other_branch_declined() -> None:
    decisions = ScriptedDecisions.of(confirms=[False])

    result = _validator(_synced_repo(branch="feature"), decisions=decisions).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "branch_mismatch"


def test_detached_head_is_rejected() -> None:
    result = _validator(_synced_repo(branch=None)).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "branch_mismatch"


def test_local_ahead_of_remote_passes() -> None:
    repo = MockRepository(head="c1", history=["c0", "c1"], remote_heads={"origin/main": "c0"})

    result = _validator(repo).run("v0.1.2")

    assert isinstance(result, Ok)
    assert result.value.remote_head == "c0"


def test_local_behind_remote_is_rejected() -> None:
    repo = MockRepository(head="c0", history=["c0", "c1"], remote_heads={"origin/main": "c1"})

    result = _validator(repo).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "remote_diverged"
    assert result.error.hint == "Run: git pull --rebase"


def test_unpublished_branch_passes() -> None:
    result = _validator(MockRepository()).run("v0.1.2")

    assert isinstance(result, Ok)
    assert result.value.remote_head is None


def test_checks_run_in_order_and_stop_at_first_failure() -> None:
    repo = _synced_repo(dirty=["src/lib.rs"], local_tags={"v0.1.2": "c0"})

    result = _validator(repo).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "dirty_tree"
    assert "local_tag_exists" not in repo.calls
    assert "fetch" not in repo.calls


def test_other_branch_behind_release_branch_is_rejected() -> None:
    decisions = ScriptedDecisions.of(confirms=[True])
    repo = MockRepository(
        branch="feature",
        head="c0",
        history=["c0", "c1"],
        remote_heads={"origin/main": "c1"},
    )

    result = _validator(repo, decisions=decisions).run("v0.1.2")

    assert isinstance(result, Err)
    assert result.error.kind == "remote_diverged"
    assert "origin/main" in result.error.message


def test_other_branch_ahead_of_release_branch_passes() -> None:
    decisions = ScriptedDecisions.of(confirms=[True])
    repo = MockRepository(
        branch="feature",
        head="c1",
        history=["c0", "c1"],
        remote_heads={"origin/main": "c0", "origin/feature": "c1"},
    )

    result = _validator(repo, decisions=decisions).run("v0.1.2")

    assert isinstance(result, Ok)
    assert result.value.branch == "feature"
    assert result.value.remote_head == "c0"
