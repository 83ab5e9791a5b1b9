"""End-to-end release orchestration.

``ReleaseFlow.run`` drives one release from the version bump to verified
artifacts. Stages run strictly in sequence and each one gates the next:

    lock -> version -> preflight -> bump -> build check -> confirm
         -> commit/tag/push -> locate CI run -> monitor -> verify

Nothing is written before preflight passes. Until the commit, a decline or
a failed build check puts the manifest and lockfile back byte for byte.
"""

from __future__ import annotations

from dataclasses import dataclass

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err, Ok, Result
from shipit.git.lock import AdvisoryLock
from shipit.git.repository import VersionControl
from shipit.output.console import ConsoleProtocol, Style
from shipit.platform.http import HttpProbe
from shipit.platform.process import run_silent
from shipit.services.release.decisions import DecisionProvider
from shipit.services.release.errors import ReleaseError
from shipit.services.release.gh import CIProvider
from shipit.services.release.locator import CIRunLocator
from shipit.services.release.model import ReleaseBump, ReleaseState, VerificationResult
from shipit.services.release.monitor import CIMonitor
from shipit.services.release.preflight import PreflightValidator
from shipit.services.release.transaction import (
    ReleaseTransaction,
    TransactionReceipt,
    default_commit_message,
)
from shipit.services.release.verify import ArtifactVerifier
from shipit.services.release.version_store import ManifestSnapshot, VersionStore

_LOG_LIMIT = 10

# Last successful transaction step -> state the repository was left in.
_STATE_AFTER_STEP: dict[str | None, ReleaseState] = {
    None: ReleaseState.VERSION_BUMPED,
    "staged": ReleaseState.VERSION_BUMPED,
    "committed": ReleaseState.COMMITTED,
    "tagged": ReleaseState.TAGGED,
    "pushed_branch": ReleaseState.TAGGED,
}


@dataclass(frozen=True, slots=True)
class ReleaseOutcome:
    """Where a release invocation stopped.

    ``state`` is the last state reached; ``error`` is None only when the
    requested work completed.
    """

    state: ReleaseState
    tag: str | None
    error: ReleaseError | None = None
    receipt: TransactionReceipt | None = None
    verification: VerificationResult | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ReleaseFlow:
    def __init__(
        self,
        *,
        repo: VersionControl,
        config: ReleaseConfig,
        console: ConsoleProtocol,
        decisions: DecisionProvider,
        ci: CIProvider | None,
        probe: HttpProbe,
        max_wait_seconds: float | None = None,
    ) -> None:
        self.repo = repo
        self.config = config
        self.console = console
        self.decisions = decisions
        self.ci = ci
        self.probe = probe
        self.max_wait_seconds = max_wait_seconds
        # Progress markers read by the CLI when the run is interrupted.
        self.tag: str | None = None
        self.pushed = False
        self.store = VersionStore(
            root=repo.root,
            manifest=config.manifest,
            lockfile=config.lockfile,
        )

    def run(
        self,
        bump: ReleaseBump,
        *,
        message: str | None = None,
        monitor: bool = True,
    ) -> ReleaseOutcome:
        lock = AdvisoryLock(self.repo.git_dir())
        acquired = lock.acquire()
        if isinstance(acquired, Err):
            held = acquired.error
            owner = f" by pid {held.owner}" if held.owner else ""
            return ReleaseOutcome(
                state=ReleaseState.INIT,
                tag=None,
                error=ReleaseError(
                    kind="release_locked",
                    message=f"another release is in progress{owner}",
                    hint=f"If it is stale, delete: {held.path}",
                ),
            )

        try:
            return self._release(bump, message=message, monitor=monitor)
        finally:
            lock.release()

    def _release(self, bump: ReleaseBump, *, message: str | None, monitor: bool) -> ReleaseOutcome:
        current = self.store.read()
        if isinstance(current, Err):
            return ReleaseOutcome(state=ReleaseState.INIT, tag=None, error=current.error)
        target = current.value.bump(bump)
        tag = target.to_tag()
        self.tag = tag

        self.console.header(f"Release {tag}")
        self.console.print(f"{self.config.manifest}: {current.value} -> {target} ({bump})")

        if monitor:
            ready = self._ensure_ci()
            if isinstance(ready, Err):
                return ReleaseOutcome(state=ReleaseState.INIT, tag=tag, error=ready.error)

        self.console.step("Running preflight checks...")
        preflight = PreflightValidator(
            repo=self.repo,
            config=self.config,
            decisions=self.decisions,
            console=self.console,
        ).run(tag)
        if isinstance(preflight, Err):
            return ReleaseOutcome(state=ReleaseState.INIT, tag=tag, error=preflight.error)
        branch = preflight.value.branch or self.config.release_branch
        self.console.success("Preflight checks passed")

        snapshot = self.store.snapshot()
        if isinstance(snapshot, Err):
            return ReleaseOutcome(state=ReleaseState.PREFLIGHT_OK, tag=tag, error=snapshot.error)

        written = self.store.write(target)
        if isinstance(written, Err):
            return self._rollback(snapshot.value, tag=tag, error=written.error)
        self.console.success(f"Bumped {self.config.manifest} to {target}")

        try:
            built = self._build_check()
            if isinstance(built, Err):
                return self._rollback(snapshot.value, tag=tag, error=built.error)

            self._show_commits_since_last_tag()

            if message is None:
                message = self.decisions.prompt_line(
                    "Commit message", default_commit_message(tag)
                )
            confirmed = self.decisions.confirm(f"Commit, tag and push {tag}?")
        except KeyboardInterrupt:
            restored = self.store.restore(snapshot.value)
            if isinstance(restored, Err):
                self.console.error(restored.error.pretty())
            raise

        if not confirmed:
            return self._rollback(
                snapshot.value,
                tag=tag,
                error=ReleaseError(kind="aborted", message="release aborted; version bump reverted"),
            )

        transaction = ReleaseTransaction(
            repo=self.repo,
            remote=self.config.remote,
            console=self.console,
        ).run(
            tag=tag,
            branch=branch,
            paths=self.store.tracked_paths(),
            message=message,
        )
        if isinstance(transaction, Err):
            state = _STATE_AFTER_STEP.get(transaction.error.last_step, ReleaseState.VERSION_BUMPED)
            return ReleaseOutcome(state=state, tag=tag, error=transaction.error)
        receipt = transaction.value
        self.pushed = True
        self.console.success(f"Pushed {tag} ({receipt.commit[:8]})")

        slug = self.ci.repo_slug if self.ci is not None else None
        if slug:
            self.console.print(f"Actions: https://github.com/{slug}/actions", Style.INFO)

        if not monitor:
            self.console.info(f"CI monitoring skipped; follow up with: shipit monitor {tag}")
            return ReleaseOutcome(state=ReleaseState.PUSHED, tag=tag, receipt=receipt)

        followed = self.follow(tag)
        return ReleaseOutcome(
            state=followed.state,
            tag=tag,
            error=followed.error,
            receipt=receipt,
            verification=followed.verification,
        )

    def follow(self, tag: str) -> ReleaseOutcome:
        """Locate, monitor and verify the CI run of an already pushed tag."""
        self.tag = tag
        self.pushed = True
        ready = self._ensure_ci()
        if isinstance(ready, Err):
            return ReleaseOutcome(state=ReleaseState.PUSHED, tag=tag, error=ready.error)
        ci = ready.value

        located = CIRunLocator(ci=ci, config=self.config, console=self.console).locate(tag)
        if isinstance(located, Err):
            return ReleaseOutcome(state=ReleaseState.PUSHED, tag=tag, error=located.error)

        monitor = CIMonitor(
            ci=ci,
            config=self.config,
            console=self.console,
            max_wait_seconds=self.max_wait_seconds,
        )
        watched = monitor.watch(located.value)
        if isinstance(watched, Err):
            if watched.error.kind == "ci_failed":
                state = ReleaseState.CI_FAILED
            elif monitor.polls:
                state = ReleaseState.CI_POLLING
            else:
                state = ReleaseState.CI_DISCOVERED
            return ReleaseOutcome(state=state, tag=tag, error=watched.error)

        verifier = ArtifactVerifier(
            ci=ci,
            probe=self.probe,
            config=self.config,
            console=self.console,
        )
        verified = verifier.verify(tag)
        if isinstance(verified, Err):
            # A failed release lookup says nothing about the assets.
            state = (
                ReleaseState.VERIFY_FAILED
                if verified.error.category == "verification"
                else ReleaseState.CI_SUCCEEDED
            )
            return ReleaseOutcome(state=state, tag=tag, error=verified.error)
        return ReleaseOutcome(state=ReleaseState.VERIFIED, tag=tag, verification=verified.value)

    def _ensure_ci(self) -> Result[CIProvider, ReleaseError]:
        if self.ci is None:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"cannot determine the GitHub repository from remote '{self.config.remote}'",
                    hint="Set repo_slug in shipit.toml or pass --no-monitor",
                )
            )
        available = self.ci.ensure_available()
        if isinstance(available, Err):
            error = available.error
            return Err(
                ReleaseError(
                    kind=error.kind,
                    message=error.message,
                    hint=f"{error.hint}, or pass --no-monitor" if error.hint else None,
                )
            )
        return Ok(self.ci)

    def _build_check(self) -> Result[None, ReleaseError]:
        cmd = list(self.config.build_check)
        if not cmd:
            return Ok(None)

        self.console.step("Running build check...")
        self.console.print(" ".join(cmd), Style.DIM)
        result = run_silent(cmd, cwd=self.repo.root)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="build_check_failed",
                    message=f"build check failed: {' '.join(cmd)} (exit {result.error.returncode})",
                    hint=result.error.detail() or "Fix the build, then release again",
                )
            )
        self.console.success("Build check passed")
        return Ok(None)

    def _show_commits_since_last_tag(self) -> None:
        last_tag = self.repo.latest_tag()
        label = last_tag or "the first commit"
        logged = self.repo.log_oneline(since=last_tag, limit=_LOG_LIMIT)
        if isinstance(logged, Err):
            self.console.warning(f"could not list commits since {label}: {logged.error.message}")
            return

        self.console.print(f"Commits since {label}:")
        if not logged.value:
            self.console.print("  (none)", Style.DIM)
        for line in logged.value:
            self.console.print(f"  {line}", Style.DIM)

    def _rollback(self, snapshot: ManifestSnapshot, *, tag: str, error: ReleaseError) -> ReleaseOutcome:
        restored = self.store.restore(snapshot)
        if isinstance(restored, Err):
            self.console.error(restored.error.message)
            return ReleaseOutcome(
                state=ReleaseState.VERSION_BUMPED,
                tag=tag,
                error=ReleaseError(
                    kind=error.kind,
                    message=f"{error.message}; restoring {self.config.manifest} also failed",
                    hint=restored.error.hint,
                ),
            )
        self.console.print(f"restored {', '.join(self.store.tracked_paths())}", Style.DIM)
        return ReleaseOutcome(state=ReleaseState.PREFLIGHT_OK, tag=tag, error=error)
