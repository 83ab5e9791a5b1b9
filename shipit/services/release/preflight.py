"""Repository checks that gate every release.

Checks run in a fixed order and stop at the first failure. Nothing here
writes to the working tree or the index; the only side effects are fetches
from the remote.
"""

from __future__ import annotations

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err, Ok, Result
from shipit.git.repository import GitError, VersionControl
from shipit.output.console import ConsoleProtocol, Style
from shipit.services.release.decisions import DecisionProvider
from shipit.services.release.errors import ReleaseError
from shipit.services.release.model import RepositoryState


def _git_failed(error: GitError, *, what: str) -> ReleaseError:
    return ReleaseError(
        kind="remote_unreachable" if error.command in {"fetch", "ls-remote"} else "invalid_input",
        message=f"{what}: git {error.command} failed",
        hint=error.message,
    )


class PreflightValidator:
    def __init__(
        self,
        *,
        repo: VersionControl,
        config: ReleaseConfig,
        decisions: DecisionProvider,
        console: ConsoleProtocol,
    ) -> None:
        self.repo = repo
        self.config = config
        self.decisions = decisions
        self.console = console

    def run(self, tag: str) -> Result[RepositoryState, ReleaseError]:
        changed = self.check_tracked_changes()
        if isinstance(changed, Err):
            return changed

        staged = self.check_staged_changes()
        if isinstance(staged, Err):
            return staged

        local = self.check_local_tag(tag)
        if isinstance(local, Err):
            return local

        remote = self.check_remote_tag(tag)
        if isinstance(remote, Err):
            return remote

        branch = self.check_branch()
        if isinstance(branch, Err):
            return branch

        return self.check_remote_ancestry(branch.value)

    def check_tracked_changes(self) -> Result[None, ReleaseError]:
        exclude = [self.config.manifest]
        if self.config.lockfile is not None:
            exclude.append(self.config.lockfile)

        result = self.repo.changed_tracked_files(exclude=exclude)
        if isinstance(result, Err):
            return Err(_git_failed(result.error, what="could not read working tree status"))

        if result.value:
            for path in result.value:
                self.console.print(f"  modified: {path}", Style.DIM)
            return Err(
                ReleaseError(
                    kind="dirty_tree",
                    message=f"you have uncommitted changes ({len(result.value)} file(s))",
                    hint="Commit or stash them first: git stash",
                )
            )
        return Ok(None)

    def check_staged_changes(self) -> Result[None, ReleaseError]:
        result = self.repo.staged_files()
        if isinstance(result, Err):
            return Err(_git_failed(result.error, what="could not read index status"))

        if result.value:
            for path in result.value:
                self.console.print(f"  staged: {path}", Style.DIM)
            return Err(
                ReleaseError(
                    kind="staged_changes",
                    message=f"you have staged changes ({len(result.value)} file(s))",
                    hint="Commit or unstage them first: git restore --staged .",
                )
            )
        return Ok(None)

    def check_local_tag(self, tag: str) -> Result[None, ReleaseError]:
        result = self.repo.local_tag_exists(tag)
        if isinstance(result, Err):
            return Err(_git_failed(result.error, what="could not list local tags"))

        if result.value:
            return Err(
                ReleaseError(
                    kind="local_tag_exists",
                    message=f"local tag {tag} already exists",
                    hint=f"Delete it with: git tag -d {tag}",
                )
            )
        return Ok(None)

    def check_remote_tag(self, tag: str) -> Result[None, ReleaseError]:
        remote = self.config.remote

        # Refresh local tag refs; the decision below still asks the remote.
        fetched = self.repo.fetch(remote, tags=True)
        if isinstance(fetched, Err):
            self.console.warning(f"git fetch --tags {remote} failed: {fetched.error.message}")

        result = self.repo.remote_tag_exists(remote, tag)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="remote_unreachable",
                    message=f"could not list tags on {remote}",
                    hint=result.error.message,
                )
            )

        if result.value:
            return Err(
                ReleaseError(
                    kind="remote_tag_exists",
                    message=f"remote tag {tag} already exists on {remote}",
                    hint="This version has already been released; bump again or pick another kind.",
                )
            )
        return Ok(None)

    def check_branch(self) -> Result[str, ReleaseError]:
        branch = self.repo.current_branch()
        expected = self.config.release_branch
        if branch is None:
            return Err(
                ReleaseError(
                    kind="branch_mismatch",
                    message="HEAD is detached",
                    hint=f"Check out a branch first: git checkout {expected}",
                )
            )

        if branch != expected:
            self.console.warning(f"you're on branch '{branch}', not '{expected}'")
            if not self.decisions.confirm("Continue anyway?"):
                return Err(
                    ReleaseError(
                        kind="branch_mismatch",
                        message=f"release declined on branch '{branch}'",
                        hint=f"Switch branch: git checkout {expected}",
                    )
                )
        return Ok(branch)

    def check_remote_ancestry(self, branch: str) -> Result[RepositoryState, ReleaseError]:
        remote = self.config.remote
        fetched = self.repo.fetch(remote)
        if isinstance(fetched, Err):
            return Err(_git_failed(fetched.error, what=f"could not fetch {remote}"))

        local = self.repo.rev_parse("HEAD")
        if isinstance(local, Err):
            return Err(_git_failed(local.error, what="could not resolve HEAD"))
        if local.value is None:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message="repository has no commits",
                    hint="Create an initial commit first.",
                )
            )

        # Compared against the release branch even when releasing from another one.
        tracking = f"{remote}/{self.config.release_branch}"
        remote_head = self.repo.rev_parse(tracking)
        if isinstance(remote_head, Err):
            return Err(_git_failed(remote_head.error, what=f"could not resolve {tracking}"))

        ahead_or_equal = True
        if remote_head.value is not None and remote_head.value != local.value:
            ancestry = self.repo.is_ancestor(remote_head.value, local.value)
            if isinstance(ancestry, Err):
                return Err(_git_failed(ancestry.error, what="could not compute merge-base"))
            ahead_or_equal = ancestry.value

        if not ahead_or_equal:
            return Err(
                ReleaseError(
                    kind="remote_diverged",
                    message=f"your branch is behind or has diverged from {tracking}",
                    hint="Run: git pull --rebase",
                )
            )

        return Ok(
            RepositoryState(
                branch=branch,
                local_head=local.value,
                remote_head=remote_head.value,
                remote_is_ancestor=ahead_or_equal,
            )
        )
