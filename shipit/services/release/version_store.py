"""Manifest version field access.

The manifest is treated as opaque text: only the value of the first
``version = "..."`` line is read or replaced, so comments, ordering and line
endings survive a bump byte for byte.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from shipit.core.result import Err, Ok, Result
from shipit.platform.files import atomic_write_bytes, atomic_write_text
from shipit.services.release.errors import ReleaseError
from shipit.services.release.model import ReleaseBump
from shipit.services.release.semver import Version, parse_version

_VERSION_LINE_RE = re.compile(r'(?m)^version\s*=\s*"([^"\r\n]*)"')


@dataclass(frozen=True, slots=True)
class ManifestSnapshot:
    """Exact bytes of the manifest and lockfile before a bump.

    ``lockfile`` is None when the lockfile did not exist.
    """

    manifest: bytes
    lockfile: bytes | None


class VersionStore:
    def __init__(self, *, root: Path, manifest: str, lockfile: str | None = None) -> None:
        self.root = root
        self.manifest = manifest
        self.lockfile = lockfile

    @property
    def manifest_path(self) -> Path:
        return self.root / self.manifest

    @property
    def lockfile_path(self) -> Path | None:
        if self.lockfile is None:
            return None
        return self.root / self.lockfile

    def read(self) -> Result[Version, ReleaseError]:
        text = self._read_text()
        if isinstance(text, Err):
            return text

        m = _VERSION_LINE_RE.search(text.value)
        if m is None:
            return Err(
                ReleaseError(
                    kind="invalid_version",
                    message=f"could not read version from {self.manifest}",
                    hint='Expected a line like: version = "1.2.3"',
                )
            )

        version = parse_version(m.group(1))
        if version is None:
            return Err(
                ReleaseError(
                    kind="invalid_version",
                    message=f"invalid version in {self.manifest}: {m.group(1)!r}",
                    hint="Expected MAJOR.MINOR.PATCH with numeric parts",
                )
            )
        return Ok(version)

    def bump(self, kind: ReleaseBump) -> Result[Version, ReleaseError]:
        """Return the next version for ``kind``. Nothing is written."""
        current = self.read()
        if isinstance(current, Err):
            return current
        return Ok(current.value.bump(kind))

    def write(self, version: Version) -> Result[None, ReleaseError]:
        text = self._read_text()
        if isinstance(text, Err):
            return text

        m = _VERSION_LINE_RE.search(text.value)
        if m is None:
            return Err(
                ReleaseError(
                    kind="invalid_version",
                    message=f"could not read version from {self.manifest}",
                )
            )

        out = text.value[: m.start(1)] + str(version) + text.value[m.end(1) :]
        try:
            atomic_write_text(self.manifest_path, out)
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="manifest_unreadable",
                    message=f"failed to write {self.manifest}: {e}",
                    hint=str(self.manifest_path),
                )
            )
        return Ok(None)

    def snapshot(self) -> Result[ManifestSnapshot, ReleaseError]:
        try:
            manifest = self.manifest_path.read_bytes()
            lock_path = self.lockfile_path
            lockfile = lock_path.read_bytes() if lock_path and lock_path.is_file() else None
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="manifest_unreadable",
                    message=f"failed to snapshot {self.manifest}: {e}",
                )
            )
        return Ok(ManifestSnapshot(manifest=manifest, lockfile=lockfile))

    def restore(self, snapshot: ManifestSnapshot) -> Result[None, ReleaseError]:
        """Put the manifest and lockfile back exactly as snapshotted."""
        try:
            atomic_write_bytes(self.manifest_path, snapshot.manifest)
            lock_path = self.lockfile_path
            if lock_path is not None:
                if snapshot.lockfile is not None:
                    atomic_write_bytes(lock_path, snapshot.lockfile)
                else:
                    lock_path.unlink(missing_ok=True)
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="manifest_unreadable",
                    message=f"failed to restore {self.manifest}: {e}",
                    hint="Run: git checkout -- " + " ".join(self.tracked_paths()),
                )
            )
        return Ok(None)

    def tracked_paths(self) -> list[str]:
        """Repo-relative paths a release commit contains."""
        paths = [self.manifest]
        lock_path = self.lockfile_path
        if self.lockfile is not None and lock_path is not None and lock_path.is_file():
            paths.append(self.lockfile)
        return paths

    def _read_text(self) -> Result[str, ReleaseError]:
        try:
            return Ok(self.manifest_path.read_bytes().decode("utf-8"))
        except FileNotFoundError:
            return Err(
                ReleaseError(
                    kind="manifest_unreadable",
                    message=f"manifest not found: {self.manifest}",
                    hint="Run from the repository root or set manifest in shipit.toml",
                )
            )
        except (OSError, UnicodeDecodeError) as e:
            return Err(
                ReleaseError(
                    kind="manifest_unreadable",
                    message=f"failed to read {self.manifest}: {e}",
                    hint=str(self.manifest_path),
                )
            )
