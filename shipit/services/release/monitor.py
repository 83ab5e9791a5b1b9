"""Poll a CI run until it reaches a terminal state.

Every poll re-reads the whole run (status, conclusion and jobs) and prints it;
nothing is diffed between polls. Elapsed time is measured with a monotonic
clock, so reported values never go backwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from time import monotonic, sleep

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err, Ok, Result
from shipit.output.console import ConsoleProtocol, Style
from shipit.services.release.errors import ReleaseError
from shipit.services.release.gh import CIProvider
from shipit.services.release.model import CIRun, JobStatus, MonitorState
from shipit.services.release.timeouts import CI_POLL_ERROR_BUDGET

_CONCLUSION_ICONS = {
    "success": "OK",
    "failure": "FAIL",
    "cancelled": "CANC",
    "skipped": "SKIP",
}

_STATUS_ICONS = {
    "in_progress": "..",
    "queued": "--",
}


def job_icon(job: JobStatus) -> str:
    """Short marker for a job; a conclusion wins over the live status."""
    if job.conclusion is not None:
        return _CONCLUSION_ICONS.get(job.conclusion, "??")
    return _STATUS_ICONS.get(job.status, "--")


@dataclass(frozen=True, slots=True)
class PollSnapshot:
    elapsed: float
    status: str
    conclusion: str | None
    jobs: tuple[JobStatus, ...]


@dataclass(frozen=True, slots=True)
class MonitorOutcome:
    state: MonitorState
    run: CIRun
    polls: tuple[PollSnapshot, ...]


class CIMonitor:
    def __init__(
        self,
        *,
        ci: CIProvider,
        config: ReleaseConfig,
        console: ConsoleProtocol,
        max_wait_seconds: float | None = None,
        error_budget: int = CI_POLL_ERROR_BUDGET,
    ) -> None:
        self.ci = ci
        self.config = config
        self.console = console
        self.max_wait_seconds = (
            max_wait_seconds if max_wait_seconds is not None else config.max_wait_seconds
        )
        self.error_budget = error_budget
        self.state = MonitorState.DISCOVERING
        self.polls: list[PollSnapshot] = []

    def watch(self, run: CIRun) -> Result[MonitorOutcome, ReleaseError]:
        self.state = MonitorState.POLLING
        self.polls = []
        self.console.step(f"Monitoring run {run.id}...")

        start = monotonic()
        current = run
        consecutive_errors = 0
        while True:
            viewed = self.ci.view_run(run.id)
            elapsed = monotonic() - start

            if isinstance(viewed, Err):
                consecutive_errors += 1
                self.console.warning(
                    f"[{elapsed:5.0f}s] poll failed ({consecutive_errors}/{self.error_budget}): "
                    f"{viewed.error.message}"
                )
                if consecutive_errors > self.error_budget:
                    self.state = MonitorState.COMPLETED_FAILURE
                    return Err(
                        ReleaseError(
                            kind="ci_api_failed",
                            message=f"lost contact with run {run.id} after "
                            f"{consecutive_errors} failed polls",
                            hint=viewed.error.hint or f"gh run view {run.id}",
                        )
                    )
            else:
                consecutive_errors = 0
                current = viewed.value
                snapshot = PollSnapshot(
                    elapsed=elapsed,
                    status=current.status,
                    conclusion=current.conclusion,
                    jobs=current.jobs,
                )
                self.polls.append(snapshot)
                self._report(snapshot)

                if current.is_completed:
                    return self._finish(current)

            if self.max_wait_seconds is not None and elapsed >= self.max_wait_seconds:
                self.state = MonitorState.COMPLETED_FAILURE
                return Err(
                    ReleaseError(
                        kind="ci_timeout",
                        message=f"run {run.id} still {current.status} after {elapsed:.0f}s",
                        hint=f"Keep watching with: gh run watch {run.id}",
                    )
                )

            sleep(self.config.poll_interval)

    def _finish(self, run: CIRun) -> Result[MonitorOutcome, ReleaseError]:
        if run.succeeded:
            self.state = MonitorState.COMPLETED_SUCCESS
            self.console.success(f"Run {run.id} succeeded")
            return Ok(MonitorOutcome(state=self.state, run=run, polls=tuple(self.polls)))

        self.state = MonitorState.COMPLETED_FAILURE
        url = f" ({run.url})" if run.url else ""
        return Err(
            ReleaseError(
                kind="ci_failed",
                message=f"run {run.id} finished with conclusion {run.conclusion or 'unknown'}{url}",
                hint=f"Inspect the logs: gh run view {run.id} --log-failed",
            )
        )

    def _report(self, snapshot: PollSnapshot) -> None:
        label = snapshot.status
        if snapshot.conclusion:
            label = f"{label} ({snapshot.conclusion})"
        self.console.print(f"[{snapshot.elapsed:5.0f}s] {label}")
        for job in snapshot.jobs:
            self.console.print(f"  {job_icon(job):<4} {job.name}", Style.DIM)
