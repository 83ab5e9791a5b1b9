from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from shipit.core.config import ReleaseConfig, load_repo_config
from shipit.core.errors import ErrorCode
from shipit.core.result import Err
from shipit.git.repository import GitRepository
from shipit.output.console import ConsoleProtocol, RichConsole
from shipit.platform.http import HttpProbe, UrllibProbe
from shipit.platform.process import run as run_process
from shipit.services.release.gh import CIProvider, GhCli, resolve_repo_slug

REPO_ENV_VAR = "SHIPIT_REPO"


@dataclass(frozen=True, slots=True)
class CLIContext:
    repo: GitRepository
    config: ReleaseConfig
    console: ConsoleProtocol
    ci: CIProvider | None
    probe: HttpProbe


def _fail(message: str) -> typer.Exit:
    typer.echo(f"error: {message}", err=True)
    return typer.Exit(code=int(ErrorCode.FAILURE))


def detect_repo_root(start: Path) -> Path:
    result = run_process(["git", "rev-parse", "--show-toplevel"], cwd=start, timeout=30.0)
    if isinstance(result, Err):
        raise _fail(f"not inside a git repository: {start}")
    return Path(result.value.strip())


def build_context() -> CLIContext:
    start = Path(os.environ.get(REPO_ENV_VAR) or Path.cwd())
    root = detect_repo_root(start)
    repo = GitRepository(root)

    config_result = load_repo_config(root)
    if isinstance(config_result, Err):
        error = config_result.error
        where = f" ({error.path})" if error.path else ""
        raise _fail(f"{error.message}{where}")
    config = config_result.value

    slug = resolve_repo_slug(config, repo)
    ci: CIProvider | None = GhCli(cwd=root, repo_slug=slug) if slug else None

    return CLIContext(
        repo=repo,
        config=config,
        console=RichConsole(),
        ci=ci,
        probe=UrllibProbe(),
    )
