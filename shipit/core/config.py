"""Typed release configuration.

Configuration lives in the ``[release]`` table of ``shipit.toml`` (or
``.shipit.toml``) at the repository root. Every key is optional; the defaults
describe the ShellDeck pipeline (Cargo manifest, ``release.yml`` workflow,
platform archives + installers + checksum file).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str, get_str_list, get_table

D = TypeVar("D")

__all__ = [
    "CONFIG_FILENAMES",
    "DEFAULT_ARTIFACTS",
    "DEFAULT_PROBE_ARTIFACTS",
    "ConfigError",
    "ReleaseConfig",
    "load_config",
    "load_repo_config",
]

CONFIG_FILENAMES = ("shipit.toml", ".shipit.toml")

# Filenames produced by the packaging scripts and attached to every release.
DEFAULT_ARTIFACTS: tuple[str, ...] = (
    "shelldeck-linux-x86_64.tar.gz",
    "shelldeck-macos-aarch64.zip",
    "shelldeck-windows-x86_64.zip",
    "ShellDeck-x86_64.AppImage",
    "ShellDeck-macos-aarch64.dmg",
    "ShellDeck-windows-x86_64-setup.exe",
    "SHA256SUMS.txt",
)

# The two archives whose download URL can be built from the tag alone.
DEFAULT_PROBE_ARTIFACTS: tuple[str, ...] = (
    "shelldeck-linux-x86_64.tar.gz",
    "shelldeck-macos-aarch64.zip",
)

_KNOWN_KEYS = frozenset(
    {
        "manifest",
        "lockfile",
        "release_branch",
        "remote",
        "workflow",
        "repo_slug",
        "build_check",
        "artifacts",
        "probe_artifacts",
        "poll_interval",
        "locate_interval",
        "locate_attempts",
        "max_wait_seconds",
    }
)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Release pipeline settings.

    Attributes:
        manifest: Manifest holding ``version = "X.Y.Z"`` (repo relative).
        lockfile: Lockfile committed alongside the manifest, None to disable.
        release_branch: Branch releases are expected to be cut from.
        remote: Git remote that receives the branch and tag.
        workflow: CI workflow file triggered by tag pushes.
        repo_slug: ``owner/name`` of the hosting repository; None derives it
            from the remote URL.
        build_check: Command run after the version bump, empty to skip.
        artifacts: Expected release asset filenames.
        probe_artifacts: Assets whose download URL is probed for reachability.
        poll_interval: Seconds between CI status polls.
        locate_interval: Seconds between CI run lookups after the push.
        locate_attempts: Number of CI run lookups before giving up.
        max_wait_seconds: Upper bound for CI polling, None for no bound.
    """

    manifest: str = "Cargo.toml"
    lockfile: str | None = "Cargo.lock"
    release_branch: str = "main"
    remote: str = "origin"
    workflow: str = "release.yml"
    repo_slug: str | None = None
    build_check: tuple[str, ...] = ("cargo", "check", "--quiet")
    artifacts: tuple[str, ...] = field(default=DEFAULT_ARTIFACTS)
    probe_artifacts: tuple[str, ...] = field(default=DEFAULT_PROBE_ARTIFACTS)
    poll_interval: float = 15.0
    locate_interval: float = 10.0
    locate_attempts: int = 30
    max_wait_seconds: float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ReleaseConfig:
        """Create a ReleaseConfig from the parsed ``[release]`` table.

        Raises:
            ValueError: On unknown keys or values of the wrong type.
        """
        unknown = sorted(set(data) - _KNOWN_KEYS)
        if unknown:
            raise ValueError(f"unknown keys: {', '.join(unknown)}")

        defaults = cls()

        lockfile: str | None = defaults.lockfile
        if "lockfile" in data:
            raw_lock = data["lockfile"]
            if not isinstance(raw_lock, str):
                raise ValueError("lockfile must be a string")
            lockfile = raw_lock.strip() or None

        return cls(
            manifest=_str_or(data, "manifest", defaults.manifest),
            lockfile=lockfile,
            release_branch=_str_or(data, "release_branch", defaults.release_branch),
            remote=_str_or(data, "remote", defaults.remote),
            workflow=_str_or(data, "workflow", defaults.workflow),
            repo_slug=_str_or(data, "repo_slug", None),
            build_check=_str_tuple_or(data, "build_check", defaults.build_check),
            artifacts=_str_tuple_or(data, "artifacts", defaults.artifacts),
            probe_artifacts=_str_tuple_or(data, "probe_artifacts", defaults.probe_artifacts),
            poll_interval=_seconds_or(data, "poll_interval", defaults.poll_interval),
            locate_interval=_seconds_or(data, "locate_interval", defaults.locate_interval),
            locate_attempts=_positive_int_or(data, "locate_attempts", defaults.locate_attempts),
            max_wait_seconds=_seconds_or(data, "max_wait_seconds", None),
        )


def _str_or(data: Mapping[str, object], key: str, default: D) -> str | D:
    if key not in data:
        return default
    value = get_str(data, key)
    if value is None:
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _str_tuple_or(
    data: Mapping[str, object], key: str, default: tuple[str, ...]
) -> tuple[str, ...]:
    if key not in data:
        return default
    items = get_str_list(data, key)
    if items is None:
        raise ValueError(f"{key} must be a list of strings")
    return tuple(items)


def _seconds_or(data: Mapping[str, object], key: str, default: D) -> float | D:
    if key not in data:
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        raise ValueError(f"{key} must be a positive number of seconds")
    return float(value)


def _positive_int_or(data: Mapping[str, object], key: str, default: int) -> int:
    if key not in data:
        return default
    value = get_int(data, key)
    if value is None or value < 1:
        raise ValueError(f"{key} must be a positive integer")
    return value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[ReleaseConfig, ConfigError]:
    """Load the ``[release]`` table from a TOML file.

    A file without a ``[release]`` table yields the defaults.
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    section = get_table(result.value, "release")
    if section is None:
        if "release" in result.value:
            return Err(ConfigError("[release] must be a table", path=path))
        return Ok(ReleaseConfig())

    try:
        return Ok(ReleaseConfig.from_dict(section))
    except ValueError as e:
        return Err(ConfigError(f"Invalid [release] config: {e}", path=path))


def load_repo_config(repo_root: Path) -> Result[ReleaseConfig, ConfigError]:
    """Load config from the first known config file in ``repo_root``.

    Missing config files are not an error: defaults apply.
    """
    for name in CONFIG_FILENAMES:
        candidate = repo_root / name
        if candidate.is_file():
            return load_config(candidate)
    return Ok(ReleaseConfig())
