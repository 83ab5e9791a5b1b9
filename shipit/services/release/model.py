from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


ReleaseBump = Literal["major", "minor", "patch"]
RELEASE_BUMPS: tuple[ReleaseBump, ...] = ("patch", "minor", "major")


class ReleaseState(Enum):
    """Progress of one release invocation, in order."""

    INIT = "init"
    PREFLIGHT_OK = "preflight_ok"
    VERSION_BUMPED = "version_bumped"
    COMMITTED = "committed"
    TAGGED = "tagged"
    PUSHED = "pushed"
    CI_DISCOVERED = "ci_discovered"
    CI_POLLING = "ci_polling"
    CI_SUCCEEDED = "ci_succeeded"
    CI_FAILED = "ci_failed"
    VERIFIED = "verified"
    VERIFY_FAILED = "verify_failed"


class MonitorState(Enum):
    DISCOVERING = "discovering"
    POLLING = "polling"
    COMPLETED_SUCCESS = "completed_success"
    COMPLETED_FAILURE = "completed_failure"


@dataclass(frozen=True, slots=True)
class RepositoryState:
    """What preflight observed about the working tree and its remote.

    Only built once the working tree and the index are clean.
    """

    branch: str | None
    local_head: str
    remote_head: str | None
    # Remote branch head is reachable from local HEAD (local is not behind).
    remote_is_ancestor: bool


@dataclass(frozen=True, slots=True)
class JobStatus:
    name: str
    status: str
    conclusion: str | None


@dataclass(frozen=True, slots=True)
class CIRun:
    id: int
    display_title: str
    status: str
    conclusion: str | None
    head_branch: str | None = None
    event: str | None = None
    url: str | None = None
    jobs: tuple[JobStatus, ...] = ()

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def succeeded(self) -> bool:
        return self.is_completed and self.conclusion == "success"

    def references(self, tag: str) -> bool:
        """True when the run was triggered by ``tag`` or names it in its title.

        Title matches need a token boundary so v0.1.2 does not match v0.1.20.
        """
        if self.head_branch == tag:
            return True
        pattern = rf"(?<![\w.]){re.escape(tag)}(?![\w.-])"
        return re.search(pattern, self.display_title) is not None


@dataclass(frozen=True, slots=True)
class ReleaseAssetSet:
    tag: str
    is_draft: bool
    assets: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class LatestRelease:
    tag: str
    name: str | None
    is_draft: bool
    is_prerelease: bool
    published_at: str | None


def _empty_reachability() -> dict[str, int]:
    return {}


@dataclass(frozen=True, slots=True)
class VerificationResult:
    found_count: int
    missing: frozenset[str]
    extra: frozenset[str]
    # url -> HTTP status code, 0 when no response was received
    reachability: dict[str, int] = field(default_factory=_empty_reachability)
    is_draft: bool = False

    @property
    def failed_probes(self) -> dict[str, int]:
        return {url: code for url, code in self.reachability.items() if code != 200}

    @property
    def overall_ok(self) -> bool:
        return not self.missing and not self.failed_probes
