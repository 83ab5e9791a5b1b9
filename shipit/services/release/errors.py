from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    # precondition: fatal, nothing was mutated
    "invalid_version",
    "manifest_unreadable",
    "dirty_tree",
    "staged_changes",
    "local_tag_exists",
    "remote_tag_exists",
    "remote_unreachable",
    "branch_mismatch",
    "remote_diverged",
    "release_locked",
    "aborted",
    # transaction: fatal, repository partially advanced
    "build_check_failed",
    "transaction_failed",
    # discovery: recoverable, re-run `shipit monitor`
    "run_not_found",
    # ci: terminal
    "ci_failed",
    "ci_timeout",
    "ci_api_failed",
    # verification: the release exists but is incomplete
    "release_not_found",
    "verification_mismatch",
    # environment
    "gh_missing",
    "gh_auth_required",
    "invalid_input",
]

ReleaseErrorCategory = Literal[
    "precondition",
    "transaction",
    "discovery",
    "ci",
    "verification",
    "environment",
]

_CATEGORY_BY_KIND: dict[str, ReleaseErrorCategory] = {
    "invalid_version": "precondition",
    "manifest_unreadable": "precondition",
    "dirty_tree": "precondition",
    "staged_changes": "precondition",
    "local_tag_exists": "precondition",
    "remote_tag_exists": "precondition",
    "remote_unreachable": "precondition",
    "branch_mismatch": "precondition",
    "remote_diverged": "precondition",
    "release_locked": "precondition",
    "aborted": "precondition",
    "build_check_failed": "transaction",
    "transaction_failed": "transaction",
    "run_not_found": "discovery",
    "ci_failed": "ci",
    "ci_timeout": "ci",
    "ci_api_failed": "ci",
    "release_not_found": "verification",
    "verification_mismatch": "verification",
    "gh_missing": "environment",
    "gh_auth_required": "environment",
    "invalid_input": "environment",
}


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error payload.

    Attributes:
        kind: Which check or step failed.
        message: What went wrong, naming the failed check.
        hint: The corrective command or next step, if any.
        last_step: For transaction failures, the last step that succeeded.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
    last_step: str | None = None

    @property
    def category(self) -> ReleaseErrorCategory:
        return _CATEGORY_BY_KIND[self.kind]

    @property
    def recoverable(self) -> bool:
        """True when re-running a read-only command can finish the job."""
        return self.category == "discovery"

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
