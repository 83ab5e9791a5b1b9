from __future__ import annotations

from typing import cast

import typer

from shipit.cli.commands._helpers import exit_on_error, fail
from shipit.cli.context import CLIContext, build_context
from shipit.cli.decisions import TyperDecisions
from shipit.core.errors import ErrorCode
from shipit.output.console import Style
from shipit.services.release.decisions import AutoDecisions, DecisionProvider
from shipit.services.release.errors import ReleaseError
from shipit.services.release.flow import ReleaseFlow, ReleaseOutcome
from shipit.services.release.model import RELEASE_BUMPS, ReleaseBump
from shipit.services.release.verify import ArtifactVerifier


def _flow(ctx: CLIContext, *, decisions: DecisionProvider, timeout: float | None) -> ReleaseFlow:
    return ReleaseFlow(
        repo=ctx.repo,
        config=ctx.config,
        console=ctx.console,
        decisions=decisions,
        ci=ctx.ci,
        probe=ctx.probe,
        max_wait_seconds=timeout,
    )


def _finish(ctx: CLIContext, outcome: ReleaseOutcome) -> None:
    if outcome.error is not None:
        ctx.console.print(f"stopped at: {outcome.state.value}", Style.DIM)
        fail(ctx.console, outcome.error)
    if outcome.tag:
        ctx.console.success(f"{outcome.tag}: {outcome.state.value}")


def _interrupted(ctx: CLIContext, flow: ReleaseFlow) -> typer.Exit:
    ctx.console.newline()
    if flow.pushed and flow.tag:
        ctx.console.warning(f"interrupted; {flow.tag} is pushed")
        ctx.console.print(f"Resume monitoring with: shipit monitor {flow.tag}", Style.DIM)
    else:
        ctx.console.warning("interrupted before push")
        ctx.console.print("Check `git status` and `git tag` before releasing again", Style.DIM)
    return typer.Exit(code=int(ErrorCode.FAILURE))


def _resolve_tag(ctx: CLIContext, tag: str | None) -> str:
    if tag:
        return tag
    latest = ctx.repo.latest_tag()
    if latest is None:
        fail(
            ctx.console,
            ReleaseError(
                kind="invalid_input",
                message="no tag given and the repository has no tags",
                hint="Pass one explicitly, e.g. shipit monitor v1.2.3",
            ),
        )
    return latest


def release(
    bump: str = typer.Argument("patch", help="Version part to bump: patch, minor or major."),
    no_monitor: bool = typer.Option(
        False, "--no-monitor", help="Stop after pushing; do not follow the CI run."
    ),
    message: str | None = typer.Option(
        None, "--message", "-m", help="Commit message (prefixed with the tag)."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to every prompt."),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Give up monitoring CI after this many seconds."
    ),
) -> None:
    """Bump the version, commit, tag, push and follow the release build."""
    if bump not in RELEASE_BUMPS:
        typer.echo(f"error: invalid bump '{bump}' (expected patch, minor or major)", err=True)
        raise typer.Exit(code=int(ErrorCode.FAILURE))

    ctx = build_context()
    decisions: DecisionProvider = AutoDecisions() if yes else TyperDecisions()
    flow = _flow(ctx, decisions=decisions, timeout=timeout)
    try:
        outcome = flow.run(cast(ReleaseBump, bump), message=message, monitor=not no_monitor)
    except KeyboardInterrupt:
        raise _interrupted(ctx, flow)
    _finish(ctx, outcome)


def monitor(
    tag: str | None = typer.Argument(None, help="Tag to follow (default: latest local tag)."),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Give up monitoring CI after this many seconds."
    ),
) -> None:
    """Follow the CI run of an already pushed tag, then verify its release."""
    ctx = build_context()
    resolved = _resolve_tag(ctx, tag)
    flow = _flow(ctx, decisions=AutoDecisions(), timeout=timeout)
    try:
        outcome = flow.follow(resolved)
    except KeyboardInterrupt:
        raise _interrupted(ctx, flow)
    _finish(ctx, outcome)


def check(
    tag: str | None = typer.Argument(None, help="Tag to verify (default: latest local tag)."),
) -> None:
    """Verify the release assets of a tag are published and downloadable."""
    ctx = build_context()
    resolved = _resolve_tag(ctx, tag)

    if ctx.ci is None:
        fail(
            ctx.console,
            ReleaseError(
                kind="invalid_input",
                message=f"cannot determine the GitHub repository from remote '{ctx.config.remote}'",
                hint="Set repo_slug in shipit.toml",
            ),
        )
    exit_on_error(ctx.ci.ensure_available(), ctx)

    verifier = ArtifactVerifier(ci=ctx.ci, probe=ctx.probe, config=ctx.config, console=ctx.console)
    exit_on_error(verifier.verify(resolved), ctx)
