"""CI provider capability backed by the GitHub CLI.

``CIProvider`` is the narrow interface the locator, monitor, verifier and
status report use. ``GhCli`` implements it with ``gh`` subprocesses (reads are
retried on transient network markers); ``MockCIProvider`` replays scripted
payloads for tests.
"""

from __future__ import annotations

import json
import re
import shutil
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from time import sleep
from typing import Protocol, TypeVar

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err, Ok, Result
from shipit.core.structured import as_obj_list, as_str_dict, get_bool, get_int, get_list, get_str
from shipit.git.repository import VersionControl
from shipit.platform.process import ProcessError
from shipit.platform.process import run as run_process
from shipit.services.release.errors import ReleaseError
from shipit.services.release.model import CIRun, JobStatus, LatestRelease, ReleaseAssetSet
from shipit.services.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

_RUN_LIST_FIELDS = "databaseId,displayTitle,headBranch,event,status,conclusion,url"
_RUN_VIEW_FIELDS = "databaseId,displayTitle,headBranch,event,status,conclusion,url,jobs"
_SLUG_RE = re.compile(r"github\.com[:/]+([^/\s]+)/([^/\s]+?)(?:\.git)?/?$")


class CIProvider(Protocol):
    @property
    def repo_slug(self) -> str: ...

    def ensure_available(self) -> Result[None, ReleaseError]: ...

    def list_runs(self, *, workflow: str, limit: int) -> Result[list[CIRun], ReleaseError]:
        """Recent runs of ``workflow``, newest first, without jobs."""
        ...

    def view_run(self, run_id: int) -> Result[CIRun, ReleaseError]:
        """Fresh status, conclusion and jobs of one run."""
        ...

    def view_release(self, tag: str) -> Result[ReleaseAssetSet | None, ReleaseError]:
        """Release for ``tag``, Ok(None) when no release exists yet."""
        ...

    def latest_release(self) -> Result[LatestRelease | None, ReleaseError]: ...


def slug_from_remote_url(url: str) -> str | None:
    """Extract ``owner/name`` from a GitHub https or ssh remote URL."""
    m = _SLUG_RE.search(url.strip())
    if m is None:
        return None
    return f"{m.group(1)}/{m.group(2)}"


def resolve_repo_slug(config: ReleaseConfig, repo: VersionControl) -> str | None:
    """Configured ``repo_slug``, else the one derived from the remote URL."""
    if config.repo_slug:
        return config.repo_slug
    url = repo.remote_url(config.remote)
    if url is None:
        return None
    return slug_from_remote_url(url)


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    if error.returncode == -1 and "timed out" in text:
        return True
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "not found" in text or "http 404" in text


def run_gh_read(
    *,
    cwd: Path,
    cmd: list[str],
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ProcessError]:
    """Run an idempotent ``gh`` read, retrying transient failures with backoff."""
    attempts = max(1, retry_attempts)
    last: Result[str, ProcessError] = Err(
        ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr="not run")
    )
    for attempt in range(attempts):
        last = run_process(cmd, cwd=cwd, timeout=timeout)
        if isinstance(last, Ok):
            return last
        if attempt < attempts - 1 and _is_transient_gh_error(last.error):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue
        return last
    return last


def _parse_json(payload: str, *, what: str) -> Result[object, ReleaseError]:
    try:
        obj: object = json.loads(payload)
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind="ci_api_failed", message=f"invalid JSON from {what}: {e}"))
    return Ok(obj)


def _parse_job(obj: object) -> JobStatus | None:
    d = as_str_dict(obj)
    if d is None:
        return None
    name = get_str(d, "name")
    status = get_str(d, "status")
    if name is None or status is None:
        return None
    return JobStatus(name=name, status=status.lower(), conclusion=_conclusion(d))


def _conclusion(d: dict[str, object]) -> str | None:
    # gh reports an empty string while the run is in flight
    value = get_str(d, "conclusion")
    return value.lower() if value else None


def parse_run(obj: object) -> CIRun | None:
    d = as_str_dict(obj)
    if d is None:
        return None

    run_id = get_int(d, "databaseId")
    status = get_str(d, "status")
    if run_id is None or status is None:
        return None

    jobs: list[JobStatus] = []
    for item in get_list(d, "jobs") or []:
        job = _parse_job(item)
        if job is not None:
            jobs.append(job)

    return CIRun(
        id=run_id,
        display_title=get_str(d, "displayTitle") or "",
        status=status.lower(),
        conclusion=_conclusion(d),
        head_branch=get_str(d, "headBranch"),
        event=get_str(d, "event"),
        url=get_str(d, "url"),
        jobs=tuple(jobs),
    )


class GhCli:
    """``CIProvider`` implemented with the ``gh`` executable."""

    def __init__(self, *, cwd: Path, repo_slug: str) -> None:
        self.cwd = cwd
        self._repo_slug = repo_slug

    @property
    def repo_slug(self) -> str:
        return self._repo_slug

    def ensure_available(self) -> Result[None, ReleaseError]:
        if shutil.which("gh") is None:
            return Err(
                ReleaseError(
                    kind="gh_missing",
                    message="gh: missing",
                    hint="Install GitHub CLI: https://cli.github.com/",
                )
            )
        result = run_process(["gh", "auth", "status"], cwd=self.cwd, timeout=GH_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="gh_auth_required",
                    message="gh auth required",
                    hint="Run: gh auth login",
                )
            )
        return Ok(None)

    def list_runs(self, *, workflow: str, limit: int) -> Result[list[CIRun], ReleaseError]:
        cmd = [
            "gh",
            "run",
            "list",
            "--repo",
            self._repo_slug,
            "--workflow",
            workflow,
            "--limit",
            str(limit),
            "--json",
            _RUN_LIST_FIELDS,
        ]
        result = run_gh_read(cwd=self.cwd, cmd=cmd)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="ci_api_failed",
                    message=f"failed to list runs of {workflow}",
                    hint=result.error.detail(),
                )
            )

        obj = _parse_json(result.value, what="gh run list")
        if isinstance(obj, Err):
            return obj
        raw = as_obj_list(obj.value)
        if raw is None:
            return Err(ReleaseError(kind="ci_api_failed", message="unexpected gh run list payload"))

        runs = [run for run in (parse_run(item) for item in raw) if run is not None]
        return Ok(runs)

    def view_run(self, run_id: int) -> Result[CIRun, ReleaseError]:
        cmd = [
            "gh",
            "run",
            "view",
            str(run_id),
            "--repo",
            self._repo_slug,
            "--json",
            _RUN_VIEW_FIELDS,
        ]
        result = run_gh_read(cwd=self.cwd, cmd=cmd)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="ci_api_failed",
                    message=f"failed to read run {run_id}",
                    hint=result.error.detail(),
                )
            )

        obj = _parse_json(result.value, what="gh run view")
        if isinstance(obj, Err):
            return obj
        run = parse_run(obj.value)
        if run is None:
            return Err(ReleaseError(kind="ci_api_failed", message="unexpected gh run view payload"))
        return Ok(run)

    def view_release(self, tag: str) -> Result[ReleaseAssetSet | None, ReleaseError]:
        cmd = [
            "gh",
            "release",
            "view",
            tag,
            "--repo",
            self._repo_slug,
            "--json",
            "tagName,isDraft,assets",
        ]
        result = run_gh_read(cwd=self.cwd, cmd=cmd)
        if isinstance(result, Err):
            if _is_not_found(result.error):
                return Ok(None)
            return Err(
                ReleaseError(
                    kind="ci_api_failed",
                    message=f"failed to read release {tag}",
                    hint=result.error.detail(),
                )
            )

        obj = _parse_json(result.value, what="gh release view")
        if isinstance(obj, Err):
            return obj
        d = as_str_dict(obj.value)
        if d is None:
            return Err(ReleaseError(kind="ci_api_failed", message="unexpected release payload"))

        names: list[str] = []
        for item in get_list(d, "assets") or []:
            asset = as_str_dict(item)
            if asset is None:
                continue
            name = get_str(asset, "name")
            if name is not None:
                names.append(name)

        return Ok(
            ReleaseAssetSet(
                tag=get_str(d, "tagName") or tag,
                is_draft=get_bool(d, "isDraft") or False,
                assets=tuple(names),
            )
        )

    def latest_release(self) -> Result[LatestRelease | None, ReleaseError]:
        cmd = [
            "gh",
            "release",
            "view",
            "--repo",
            self._repo_slug,
            "--json",
            "tagName,name,isDraft,isPrerelease,publishedAt",
        ]
        result = run_gh_read(cwd=self.cwd, cmd=cmd)
        if isinstance(result, Err):
            if _is_not_found(result.error):
                return Ok(None)
            return Err(
                ReleaseError(
                    kind="ci_api_failed",
                    message="failed to read latest release",
                    hint=result.error.detail(),
                )
            )

        obj = _parse_json(result.value, what="gh release view")
        if isinstance(obj, Err):
            return obj
        d = as_str_dict(obj.value)
        tag = get_str(d, "tagName") if d is not None else None
        if d is None or tag is None:
            return Err(ReleaseError(kind="ci_api_failed", message="unexpected release payload"))

        return Ok(
            LatestRelease(
                tag=tag,
                name=get_str(d, "name"),
                is_draft=get_bool(d, "isDraft") or False,
                is_prerelease=get_bool(d, "isPrerelease") or False,
                published_at=get_str(d, "publishedAt"),
            )
        )


def _empty_releases() -> dict[str, ReleaseAssetSet]:
    return {}


def _empty_calls() -> list[str]:
    return []


@dataclass
class MockCIProvider:
    """Scripted ``CIProvider`` for tests.

    ``run_lists`` and ``run_views`` are consumed one item per call; once a
    queue has a single item left it keeps answering with it, so a terminal
    run state can be polled repeatedly.
    """

    slug: str = "octo/app"
    run_lists: deque[list[CIRun] | ReleaseError] = field(default_factory=deque)
    run_views: deque[CIRun | ReleaseError] = field(default_factory=deque)
    releases: dict[str, ReleaseAssetSet] = field(default_factory=_empty_releases)
    latest: LatestRelease | None = None
    unavailable: ReleaseError | None = None
    # Returned by view_release and latest_release when set.
    release_error: ReleaseError | None = None
    calls: list[str] = field(default_factory=_empty_calls)

    @property
    def repo_slug(self) -> str:
        return self.slug

    def ensure_available(self) -> Result[None, ReleaseError]:
        self.calls.append("ensure_available")
        if self.unavailable is not None:
            return Err(self.unavailable)
        return Ok(None)

    def list_runs(self, *, workflow: str, limit: int) -> Result[list[CIRun], ReleaseError]:
        self.calls.append(f"list_runs {workflow}")
        item = _next(self.run_lists, default=[])
        if isinstance(item, ReleaseError):
            return Err(item)
        return Ok(list(item))

    def view_run(self, run_id: int) -> Result[CIRun, ReleaseError]:
        self.calls.append(f"view_run {run_id}")
        item = _next(
            self.run_views,
            default=ReleaseError(kind="ci_api_failed", message=f"no scripted view for {run_id}"),
        )
        if isinstance(item, ReleaseError):
            return Err(item)
        return Ok(item)

    def view_release(self, tag: str) -> Result[ReleaseAssetSet | None, ReleaseError]:
        self.calls.append(f"view_release {tag}")
        if self.release_error is not None:
            return Err(self.release_error)
        return Ok(self.releases.get(tag))

    def latest_release(self) -> Result[LatestRelease | None, ReleaseError]:
        self.calls.append("latest_release")
        if self.release_error is not None:
            return Err(self.release_error)
        return Ok(self.latest)


T = TypeVar("T")


def _next(queue: deque[T], *, default: T) -> T:
    if not queue:
        return default
    if len(queue) == 1:
        return queue[0]
    return queue.popleft()
