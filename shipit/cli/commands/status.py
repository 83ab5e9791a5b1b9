"""Status command - show version, tag, release and CI state."""

from __future__ import annotations

from shipit.cli.context import build_context
from shipit.services.release.status import StatusReporter
from shipit.services.release.version_store import VersionStore


def status() -> None:
    """Show the current version, latest tag, latest release and latest CI run."""
    ctx = build_context()
    reporter = StatusReporter(
        repo=ctx.repo,
        store=VersionStore(
            root=ctx.repo.root,
            manifest=ctx.config.manifest,
            lockfile=ctx.config.lockfile,
        ),
        config=ctx.config,
        ci=ctx.ci,
        console=ctx.console,
    )
    reporter.render(reporter.collect())
