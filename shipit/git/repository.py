"""Version-control capability.

The release stages only talk to git through ``VersionControl``. Two
implementations live here:

- ``GitRepository``: runs ``git`` subprocesses in a working tree.
- ``MockRepository``: in-memory state for tests, with per-operation failure
  injection.

Usage:
    repo = GitRepository(Path("/path/to/repo"))
    match repo.local_tag_exists("v1.2.3"):
        case Ok(True):
            print("tag already exists")
        case Ok(False):
            pass
        case Err(e):
            print(f"git failed: {e.message}")
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, TypeVar

from shipit.core.result import Err, Ok, Result
from shipit.platform.process import ProcessError
from shipit.platform.process import run as run_process

T = TypeVar("T")

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "ls-remote"})

__all__ = [
    "GitError",
    "GitRepository",
    "MockRepository",
    "VersionControl",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


class VersionControl(Protocol):
    """Narrow view of the repository used by the release stages."""

    @property
    def root(self) -> Path: ...

    def git_dir(self) -> Path:
        """Directory holding repository metadata (``.git``)."""
        ...

    def changed_tracked_files(self, *, exclude: Sequence[str] = ()) -> Result[list[str], GitError]:
        """Tracked files with unstaged changes, minus ``exclude`` paths."""
        ...

    def staged_files(self) -> Result[list[str], GitError]: ...

    def local_tag_exists(self, tag: str) -> Result[bool, GitError]: ...

    def remote_tag_exists(self, remote: str, tag: str) -> Result[bool, GitError]:
        """Query the remote directly; never answered from local refs."""
        ...

    def fetch(self, remote: str, *, tags: bool = False) -> Result[None, GitError]: ...

    def current_branch(self) -> str | None:
        """Current branch, None on detached HEAD."""
        ...

    def rev_parse(self, ref: str) -> Result[str | None, GitError]:
        """Resolve ``ref`` to a sha, Ok(None) if it does not exist."""
        ...

    def is_ancestor(self, ancestor: str, descendant: str) -> Result[bool, GitError]: ...

    def add(self, paths: Sequence[str]) -> Result[None, GitError]: ...

    def commit(self, message: str) -> Result[str, GitError]:
        """Commit the index and return the new HEAD sha."""
        ...

    def create_tag(self, tag: str) -> Result[None, GitError]: ...

    def push_branch(self, remote: str, branch: str) -> Result[None, GitError]: ...

    def push_tag(self, remote: str, tag: str) -> Result[None, GitError]: ...

    def latest_tag(self) -> str | None:
        """Nearest tag reachable from HEAD, None if there is none."""
        ...

    def log_oneline(self, *, since: str | None, limit: int) -> Result[list[str], GitError]: ...

    def remote_url(self, remote: str) -> str | None: ...


class GitRepository:
    """``VersionControl`` backed by the ``git`` executable.

    Attributes:
        path: Path to the working tree root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def root(self) -> Path:
        return self.path

    def git_dir(self) -> Path:
        result = self._run(["rev-parse", "--absolute-git-dir"])
        match result:
            case Ok(stdout) if stdout.strip():
                return Path(stdout.strip())
            case _:
                return self.path / ".git"

    def changed_tracked_files(self, *, exclude: Sequence[str] = ()) -> Result[list[str], GitError]:
        pathspec = ["."] + [f":!{p}" for p in exclude]
        return self._lines("diff", ["diff", "--name-only", "--", *pathspec])

    def staged_files(self) -> Result[list[str], GitError]:
        return self._lines("diff --cached", ["diff", "--cached", "--name-only"])

    def local_tag_exists(self, tag: str) -> Result[bool, GitError]:
        result = self._lines("tag -l", ["tag", "-l", tag])
        if isinstance(result, Err):
            return result
        return Ok(tag in result.value)

    def remote_tag_exists(self, remote: str, tag: str) -> Result[bool, GitError]:
        ref = f"refs/tags/{tag}"
        result = self._lines("ls-remote", ["ls-remote", "--tags", remote, ref])
        if isinstance(result, Err):
            return result
        return Ok(any(line.split()[-1] in (ref, f"{ref}^{{}}") for line in result.value))

    def fetch(self, remote: str, *, tags: bool = False) -> Result[None, GitError]:
        args = ["fetch", "--quiet", remote]
        if tags:
            args.insert(1, "--tags")
        return self._void("fetch", args)

    def current_branch(self) -> str | None:
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch in ("", "HEAD") else branch
            case Err(_):
                return None

    def rev_parse(self, ref: str) -> Result[str | None, GitError]:
        result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        match result:
            case Ok(stdout):
                return Ok(stdout.strip() or None)
            case Err(e):
                # --verify --quiet exits 1 without output for unknown refs
                if e.returncode == 1 and not e.stderr.strip():
                    return Ok(None)
                return Err(_git_error("rev-parse", e))

    def is_ancestor(self, ancestor: str, descendant: str) -> Result[bool, GitError]:
        base = self._run(["merge-base", ancestor, descendant])
        if isinstance(base, Err):
            # merge-base exits 1 when the histories are unrelated
            if base.error.returncode == 1 and not base.error.stderr.strip():
                return Ok(False)
            return Err(_git_error("merge-base", base.error))

        resolved = self.rev_parse(ancestor)
        if isinstance(resolved, Err):
            return resolved
        return Ok(base.value.strip() == resolved.value)

    def add(self, paths: Sequence[str]) -> Result[None, GitError]:
        return self._void("add", ["add", "--", *paths])

    def commit(self, message: str) -> Result[str, GitError]:
        committed = self._void("commit", ["commit", "--quiet", "-m", message])
        if isinstance(committed, Err):
            return committed
        head = self.rev_parse("HEAD")
        if isinstance(head, Err):
            return head
        if head.value is None:
            return Err(GitError(command="commit", message="HEAD missing after commit"))
        return Ok(head.value)

    def create_tag(self, tag: str) -> Result[None, GitError]:
        return self._void("tag", ["tag", tag])

    def push_branch(self, remote: str, branch: str) -> Result[None, GitError]:
        return self._void("push", ["push", "--quiet", remote, f"HEAD:refs/heads/{branch}"])

    def push_tag(self, remote: str, tag: str) -> Result[None, GitError]:
        return self._void("push", ["push", "--quiet", remote, f"refs/tags/{tag}"])

    def latest_tag(self) -> str | None:
        result = self._run(["describe", "--tags", "--abbrev=0"])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def log_oneline(self, *, since: str | None, limit: int) -> Result[list[str], GitError]:
        args = ["log", "--oneline", f"-{limit}"]
        if since is not None:
            args.append(f"{since}..HEAD")
        return self._lines("log", args)

    def remote_url(self, remote: str) -> str | None:
        result = self._run(["remote", "get-url", remote])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def _lines(self, command: str, args: list[str]) -> Result[list[str], GitError]:
        result = self._run(args)
        match result:
            case Err(e):
                return Err(_git_error(command, e))
            case Ok(stdout):
                return Ok([ln.strip() for ln in stdout.splitlines() if ln.strip()])

    def _void(self, command: str, args: list[str]) -> Result[None, GitError]:
        result = self._run(args)
        match result:
            case Err(e):
                return Err(_git_error(command, e))
            case Ok(_):
                return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)


def _git_error(command: str, error: ProcessError) -> GitError:
    return GitError(
        command=command,
        message=error.detail() or f"git {command} failed",
        returncode=error.returncode,
    )


def _empty_str_list() -> list[str]:
    return []


def _empty_str_set() -> set[str]:
    return set()


def _empty_refs() -> dict[str, str]:
    return {}


def _empty_failures() -> dict[str, GitError]:
    return {}


@dataclass
class MockRepository:
    """In-memory ``VersionControl`` for tests.

    Commits are linear: each commit's parent is the previous HEAD. Ancestry
    between HEAD and remote branch heads is configured through ``history``
    (oldest first). Set ``failures[<operation>]`` to make an operation fail,
    e.g. ``failures["push_tag"] = GitError("push", "rejected")``.
    """

    path: Path = Path(".")
    branch: str | None = "main"
    head: str = "c0"
    history: list[str] = field(default_factory=_empty_str_list)
    dirty: list[str] = field(default_factory=_empty_str_list)
    staged: list[str] = field(default_factory=_empty_str_list)
    local_tags: dict[str, str] = field(default_factory=_empty_refs)
    remote_tags: set[str] = field(default_factory=_empty_str_set)
    remote_heads: dict[str, str] = field(default_factory=_empty_refs)
    remotes: dict[str, str] = field(default_factory=_empty_refs)
    commit_messages: list[str] = field(default_factory=_empty_str_list)
    pushed: list[str] = field(default_factory=_empty_str_list)
    failures: dict[str, GitError] = field(default_factory=_empty_failures)
    calls: list[str] = field(default_factory=_empty_str_list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(self.head)

    @property
    def root(self) -> Path:
        return self.path

    def git_dir(self) -> Path:
        return self.path / ".git"

    def changed_tracked_files(self, *, exclude: Sequence[str] = ()) -> Result[list[str], GitError]:
        return self._guard(
            "changed_tracked_files", lambda: [p for p in self.dirty if p not in exclude]
        )

    def staged_files(self) -> Result[list[str], GitError]:
        return self._guard("staged_files", lambda: list(self.staged))

    def local_tag_exists(self, tag: str) -> Result[bool, GitError]:
        return self._guard("local_tag_exists", lambda: tag in self.local_tags)

    def remote_tag_exists(self, remote: str, tag: str) -> Result[bool, GitError]:
        return self._guard("remote_tag_exists", lambda: tag in self.remote_tags)

    def fetch(self, remote: str, *, tags: bool = False) -> Result[None, GitError]:
        return self._guard("fetch", lambda: None)

    def current_branch(self) -> str | None:
        self.calls.append("current_branch")
        return self.branch

    def rev_parse(self, ref: str) -> Result[str | None, GitError]:
        def resolve() -> str | None:
            if ref == "HEAD":
                return self.head
            if ref in self.remote_heads:
                return self.remote_heads[ref]
            if ref in self.local_tags:
                return self.local_tags[ref]
            return ref if ref in self.history else None

        return self._guard("rev_parse", resolve)

    def is_ancestor(self, ancestor: str, descendant: str) -> Result[bool, GitError]:
        def check() -> bool:
            if ancestor not in self.history or descendant not in self.history:
                return False
            return self.history.index(ancestor) <= self.history.index(descendant)

        return self._guard("is_ancestor", check)

    def add(self, paths: Sequence[str]) -> Result[None, GitError]:
        def stage() -> None:
            for p in paths:
                if p not in self.staged:
                    self.staged.append(p)

        return self._guard("add", stage)

    def commit(self, message: str) -> Result[str, GitError]:
        def do_commit() -> str:
            sha = f"c{len(self.history)}"
            self.history.append(sha)
            self.head = sha
            self.commit_messages.append(message)
            self.staged.clear()
            return sha

        return self._guard("commit", do_commit)

    def create_tag(self, tag: str) -> Result[None, GitError]:
        def tag_head() -> None:
            self.local_tags[tag] = self.head

        return self._guard("create_tag", tag_head)

    def push_branch(self, remote: str, branch: str) -> Result[None, GitError]:
        def push() -> None:
            self.remote_heads[f"{remote}/{branch}"] = self.head
            self.pushed.append(f"{remote} {branch}")

        return self._guard("push_branch", push)

    def push_tag(self, remote: str, tag: str) -> Result[None, GitError]:
        def push() -> None:
            self.remote_tags.add(tag)
            self.pushed.append(f"{remote} {tag}")

        return self._guard("push_tag", push)

    def latest_tag(self) -> str | None:
        self.calls.append("latest_tag")
        reachable = [t for t, sha in self.local_tags.items() if sha in self.history]
        if not reachable:
            return None
        return max(reachable, key=lambda t: self.history.index(self.local_tags[t]))

    def log_oneline(self, *, since: str | None, limit: int) -> Result[list[str], GitError]:
        def log() -> list[str]:
            start = 0
            if since is not None and since in self.local_tags:
                start = self.history.index(self.local_tags[since]) + 1
            return [f"{sha} commit" for sha in reversed(self.history[start:])][:limit]

        return self._guard("log_oneline", log)

    def remote_url(self, remote: str) -> str | None:
        self.calls.append("remote_url")
        return self.remotes.get(remote)

    def _guard(self, operation: str, action: Callable[[], T]) -> Result[T, GitError]:
        self.calls.append(operation)
        failure = self.failures.get(operation)
        if failure is not None:
            return Err(failure)
        return Ok(action())


