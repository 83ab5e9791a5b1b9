"""Git operations module.

Usage:
    from shipit.git import GitRepository

    repo = GitRepository(Path("/path/to/repo"))
    branch = repo.current_branch()
"""

from shipit.git.lock import AdvisoryLock, LockHeld
from shipit.git.repository import (
    GitError,
    GitRepository,
    MockRepository,
    VersionControl,
)

__all__ = [
    # Repository
    "GitError",
    "GitRepository",
    "MockRepository",
    "VersionControl",
    # Lock
    "AdvisoryLock",
    "LockHeld",
]
