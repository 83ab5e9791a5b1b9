from __future__ import annotations

from dataclasses import dataclass

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err
from shipit.git.repository import VersionControl
from shipit.output.console import ConsoleProtocol, Style
from shipit.services.release.gh import CIProvider
from shipit.services.release.model import CIRun, LatestRelease
from shipit.services.release.version_store import VersionStore


@dataclass(frozen=True, slots=True)
class StatusReport:
    """Read-only snapshot of release state.

    ``ci_error`` is set when the CI provider could not be asked; the release
    and run fields are then None.
    """

    version: str | None
    version_error: str | None
    latest_tag: str | None
    branch: str | None
    latest_release: LatestRelease | None
    latest_run: CIRun | None
    ci_error: str | None


class StatusReporter:
    def __init__(
        self,
        *,
        repo: VersionControl,
        store: VersionStore,
        config: ReleaseConfig,
        ci: CIProvider | None,
        console: ConsoleProtocol,
    ) -> None:
        self.repo = repo
        self.store = store
        self.config = config
        self.ci = ci
        self.console = console

    def collect(self) -> StatusReport:
        version = self.store.read()
        latest_release: LatestRelease | None = None
        latest_run: CIRun | None = None
        ci_errors: list[str] = []

        if self.ci is None:
            ci_errors.append("repository slug unknown (set repo_slug in shipit.toml)")
        else:
            available = self.ci.ensure_available()
            if isinstance(available, Err):
                ci_errors.append(available.error.message)
            else:
                release = self.ci.latest_release()
                if isinstance(release, Err):
                    ci_errors.append(release.error.message)
                else:
                    latest_release = release.value

                runs = self.ci.list_runs(workflow=self.config.workflow, limit=1)
                if isinstance(runs, Err):
                    ci_errors.append(runs.error.message)
                elif runs.value:
                    latest_run = runs.value[0]

        return StatusReport(
            version=None if isinstance(version, Err) else str(version.value),
            version_error=version.error.message if isinstance(version, Err) else None,
            latest_tag=self.repo.latest_tag(),
            branch=self.repo.current_branch(),
            latest_release=latest_release,
            latest_run=latest_run,
            ci_error="; ".join(ci_errors) or None,
        )

    def render(self, report: StatusReport) -> None:
        self.console.header("Release status")
        if report.version is not None:
            self.console.print(f"version:        {report.version}")
        else:
            self.console.print(f"version:        unreadable ({report.version_error})", Style.ERROR)
        self.console.print(f"latest tag:     {report.latest_tag or '(none)'}")
        self.console.print(f"branch:         {report.branch or '(detached)'}")

        if report.ci_error is not None:
            self.console.print(f"ci:             unavailable ({report.ci_error})", Style.DIM)

        release = report.latest_release
        if release is not None:
            flags = []
            if release.is_draft:
                flags.append("draft")
            if release.is_prerelease:
                flags.append("prerelease")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            published = release.published_at or "unpublished"
            self.console.print(f"latest release: {release.tag}{suffix} ({published})")
        elif report.ci_error is None:
            self.console.print("latest release: (none)")

        run = report.latest_run
        if run is not None:
            outcome = run.conclusion or run.status
            self.console.print(f"latest run:     {run.display_title} [{outcome}]")
            if run.url:
                self.console.print(f"                {run.url}", Style.DIM)
        elif report.ci_error is None:
            self.console.print("latest run:     (none)")
