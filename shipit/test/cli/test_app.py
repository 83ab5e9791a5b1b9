from __future__ import annotations

from pathlib import Path

import pytest

from shipit.cli.app import app, expand_mode_flags
from shipit.cli.context import CLIContext
from shipit.core.config import ReleaseConfig
from shipit.core.errors import ErrorCode
from shipit.git.repository import GitRepository
from shipit.output.console import MockConsole
from shipit.platform.http import MockHttpProbe
from shipit.services.release.flow import ReleaseOutcome
from shipit.services.release.gh import MockCIProvider
from shipit.services.release.model import ReleaseAssetSet, ReleaseState


# =============================================================================
# Flag rewriting
# =============================================================================


def test_status_flag_becomes_command() -> None:
    assert expand_mode_flags(["--status"]) == ["status"]


def test_monitor_flag_with_and_without_tag() -> None:
    assert expand_mode_flags(["--monitor"]) == ["monitor"]
    assert expand_mode_flags(["--monitor", "v1.2.3", "--timeout", "60"]) == [
        "monitor",
        "v1.2.3",
        "--timeout",
        "60",
    ]


def test_root_options_stay_in_front() -> None:
    assert expand_mode_flags(["--repo", "/tmp/app", "--check", "v1.0.0"]) == [
        "--repo",
        "/tmp/app",
        "check",
        "v1.0.0",
    ]


def test_flags_after_a_command_are_left_alone() -> None:
    assert expand_mode_flags(["release", "--status"]) == ["release", "--status"]
    assert expand_mode_flags(["status"]) == ["status"]
    assert expand_mode_flags([]) == []


# =============================================================================
# Dispatch through the app
# =============================================================================


def _patch_context(monkeypatch: pytest.MonkeyPatch, ctx: CLIContext) -> None:
    import shipit.cli.commands.release_cmd as release_cmd
    import shipit.cli.commands.status as status_cmd

    monkeypatch.setattr(release_cmd, "build_context", lambda: ctx)
    monkeypatch.setattr(status_cmd, "build_context", lambda: ctx)


def _invoke(args: list[str]) -> int:
    try:
        app(args=expand_mode_flags(args), prog_name="shipit")
    except SystemExit as e:
        return int(e.code or 0)
    return 0


def test_status_flag_renders_status(sandbox, monkeypatch: pytest.MonkeyPatch) -> None:
    console = MockConsole()
    ctx = CLIContext(
        repo=GitRepository(sandbox.work),
        config=ReleaseConfig(lockfile=None, build_check=()),
        console=console,
        ci=None,
        probe=MockHttpProbe(),
    )
    _patch_context(monkeypatch, ctx)

    assert _invoke(["--status"]) == 0
    assert console.find("version:        0.1.1")
    assert console.find("latest tag:     v0.1.1")


def test_monitor_flag_follows_given_tag(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import shipit.cli.commands.release_cmd as release_cmd

    ctx = CLIContext(
        repo=GitRepository(tmp_path),
        config=ReleaseConfig(),
        console=MockConsole(),
        ci=MockCIProvider(),
        probe=MockHttpProbe(),
    )
    _patch_context(monkeypatch, ctx)
    seen: list[str] = []

    def followed(self: object, tag: str) -> ReleaseOutcome:
        seen.append(tag)
        return ReleaseOutcome(state=ReleaseState.VERIFIED, tag=tag)

    monkeypatch.setattr(release_cmd.ReleaseFlow, "follow", followed)

    assert _invoke(["--monitor", "v0.1.2"]) == 0
    assert seen == ["v0.1.2"]


def test_check_flag_reports_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ci = MockCIProvider(
        slug="octo/demo",
        releases={"v1.0.0": ReleaseAssetSet(tag="v1.0.0", is_draft=False, assets=())},
    )
    ctx = CLIContext(
        repo=GitRepository(tmp_path),
        config=ReleaseConfig(artifacts=("a.zip",), probe_artifacts=()),
        console=MockConsole(),
        ci=ci,
        probe=MockHttpProbe(),
    )
    _patch_context(monkeypatch, ctx)

    assert _invoke(["--check", "v1.0.0"]) == int(ErrorCode.FAILURE)
    assert ci.calls == ["ensure_available", "view_release v1.0.0"]


def test_invalid_repo_exits_1(tmp_path: Path) -> None:
    assert _invoke(["--repo", str(tmp_path / "missing"), "status"]) == int(ErrorCode.FAILURE)


def test_unknown_bump_exits_1() -> None:
    assert _invoke(["release", "huge"]) == int(ErrorCode.FAILURE)
