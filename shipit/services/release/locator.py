from __future__ import annotations

from time import sleep

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err, Ok, Result
from shipit.output.console import ConsoleProtocol, Style
from shipit.services.release.errors import ReleaseError
from shipit.services.release.gh import CIProvider
from shipit.services.release.model import CIRun

_RUN_LIST_LIMIT = 10


def find_run_for_tag(runs: list[CIRun], tag: str) -> CIRun | None:
    """Newest run whose head branch or title references ``tag``.

    ``gh run list`` returns runs newest first.
    """
    for run in runs:
        if run.references(tag):
            return run
    return None


class CIRunLocator:
    def __init__(self, *, ci: CIProvider, config: ReleaseConfig, console: ConsoleProtocol) -> None:
        self.ci = ci
        self.config = config
        self.console = console

    def locate(self, tag: str) -> Result[CIRun, ReleaseError]:
        workflow = self.config.workflow
        attempts = max(1, self.config.locate_attempts)

        self.console.step(f"Waiting for the {workflow} run of {tag}...")
        for attempt in range(attempts):
            listed = self.ci.list_runs(workflow=workflow, limit=_RUN_LIST_LIMIT)
            if isinstance(listed, Err):
                # The run list can lag right after a push; treat failures like a miss.
                self.console.print(f"run lookup failed: {listed.error.message}", Style.DIM)
            else:
                run = find_run_for_tag(listed.value, tag)
                if run is not None:
                    self.console.success(f"Found run {run.id}: {run.display_title}")
                    if run.url:
                        self.console.print(run.url, Style.DIM)
                    return Ok(run)

            if attempt < attempts - 1:
                self.console.print(
                    f"not yet visible ({attempt + 1}/{attempts}), retrying in "
                    f"{self.config.locate_interval:g}s",
                    Style.DIM,
                )
                sleep(self.config.locate_interval)

        return Err(
            ReleaseError(
                kind="run_not_found",
                message=f"no {workflow} run found for {tag} after {attempts} attempt(s)",
                hint=f"The workflow may still be queued; run: shipit monitor {tag}",
            )
        )
