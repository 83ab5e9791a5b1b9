"""Advisory release lock.

Two release runs against the same working tree would race on the index and
on the manifest. The lock is a marker file in the git directory, created
with ``O_EXCL`` so only one process can hold it. It is cooperative: nothing
stops plain ``git`` commands from running meanwhile.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from shipit.core.result import Err, Ok, Result

LOCK_FILENAME = "shipit-release.lock"

__all__ = ["LOCK_FILENAME", "AdvisoryLock", "LockHeld"]


@dataclass(frozen=True, slots=True)
class LockHeld:
    """The lock file already exists.

    Attributes:
        path: Lock file location
        owner: Content of the lock file (pid of the holder), if readable
    """

    path: Path
    owner: str | None


class AdvisoryLock:
    """Exclusive marker file held for the duration of a release.

    Usage:
        lock = AdvisoryLock(repo.git_dir())
        match lock.acquire():
            case Err(held):
                print(f"another release is running ({held.path})")
            case Ok(_):
                try:
                    ...
                finally:
                    lock.release()
    """

    def __init__(self, git_dir: Path) -> None:
        self.path = git_dir / LOCK_FILENAME
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> Result[None, LockHeld]:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return Err(LockHeld(path=self.path, owner=self._read_owner()))

        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(f"{os.getpid()}\n")
        self._held = True
        return Ok(None)

    def release(self) -> None:
        """Remove the lock file if this instance holds it."""
        if not self._held:
            return
        self.path.unlink(missing_ok=True)
        self._held = False

    def _read_owner(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8").strip() or None
        except OSError:
            return None
