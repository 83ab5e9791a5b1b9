"""Commit, tag and push a version bump.

The steps run in a fixed order and are never retried. The branch is pushed
before the tag so the tag always points at a commit the remote already has.
A failure after the commit leaves the repository partially advanced; the
error names the last step that succeeded and the commands that finish the
job by hand.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from shipit.core.result import Err, Ok, Result
from shipit.git.repository import VersionControl
from shipit.output.console import ConsoleProtocol, Style
from shipit.services.release.errors import ReleaseError

TransactionStep = Literal["staged", "committed", "tagged", "pushed_branch", "pushed_tag"]

_VERSIONED_MESSAGE_RE = re.compile(r"^v[0-9]")


def default_commit_message(tag: str) -> str:
    return f"{tag}: "


def normalize_commit_message(message: str, *, tag: str) -> str:
    """Ensure the commit subject starts with the version tag."""
    text = message.strip()
    if text.rstrip(": ") in ("", tag):
        return tag
    if _VERSIONED_MESSAGE_RE.match(text):
        return text
    return f"{tag}: {text}"


@dataclass(frozen=True, slots=True)
class TransactionReceipt:
    tag: str
    branch: str
    commit: str
    message: str


class ReleaseTransaction:
    def __init__(self, *, repo: VersionControl, remote: str, console: ConsoleProtocol) -> None:
        self.repo = repo
        self.remote = remote
        self.console = console

    def run(
        self,
        *,
        tag: str,
        branch: str,
        paths: Sequence[str],
        message: str,
    ) -> Result[TransactionReceipt, ReleaseError]:
        remote = self.remote
        message = normalize_commit_message(message, tag=tag)

        self.console.step("Committing and tagging...")
        self.console.print(f"git add {' '.join(paths)}", Style.DIM)
        added = self.repo.add(paths)
        if isinstance(added, Err):
            return Err(
                ReleaseError(
                    kind="transaction_failed",
                    message="git add failed",
                    hint=(
                        f"{added.error.message}; nothing was committed. "
                        f"Revert the bump with: git checkout -- {' '.join(paths)}"
                    ),
                )
            )

        self.console.print(f"git commit -m {message!r}", Style.DIM)
        committed = self.repo.commit(message)
        if isinstance(committed, Err):
            return Err(
                ReleaseError(
                    kind="transaction_failed",
                    message="git commit failed",
                    hint=(
                        f"{committed.error.message}; configure git user.name/user.email if "
                        f"needed, then revert with: git reset -q -- {' '.join(paths)} "
                        f"&& git checkout -- {' '.join(paths)}"
                    ),
                    last_step="staged",
                )
            )
        commit = committed.value

        self.console.print(f"git tag {tag}", Style.DIM)
        tagged = self.repo.create_tag(tag)
        if isinstance(tagged, Err):
            return Err(
                ReleaseError(
                    kind="transaction_failed",
                    message=f"git tag {tag} failed (commit {commit[:8]} exists locally)",
                    hint=(
                        f"{tagged.error.message}; finish with: git tag {tag} && "
                        f"git push {remote} {branch} && git push {remote} {tag}"
                    ),
                    last_step="committed",
                )
            )

        self.console.step(f"Pushing to {remote}...")
        self.console.print(f"git push {remote} {branch}", Style.DIM)
        pushed_branch = self.repo.push_branch(remote, branch)
        if isinstance(pushed_branch, Err):
            return Err(
                ReleaseError(
                    kind="transaction_failed",
                    message=f"git push {remote} {branch} failed (tag {tag} exists locally only)",
                    hint=(
                        f"{pushed_branch.error.message}; finish with: "
                        f"git push {remote} {branch} && git push {remote} {tag}"
                    ),
                    last_step="tagged",
                )
            )

        self.console.print(f"git push {remote} {tag}", Style.DIM)
        pushed_tag = self.repo.push_tag(remote, tag)
        if isinstance(pushed_tag, Err):
            return Err(
                ReleaseError(
                    kind="transaction_failed",
                    message=f"git push {remote} {tag} failed (branch already pushed)",
                    hint=f"{pushed_tag.error.message}; finish with: git push {remote} {tag}",
                    last_step="pushed_branch",
                )
            )

        return Ok(TransactionReceipt(tag=tag, branch=branch, commit=commit, message=message))
