from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from pathlib import Path

import typer

from shipit import __version__
from shipit.cli.commands.release_cmd import check, monitor, release
from shipit.cli.commands.status import status
from shipit.cli.context import REPO_ENV_VAR
from shipit.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    epilog="--status, --monitor and --check (each with an optional tag) work in place of the commands.",
)

# Flag spellings of the read-only commands, kept from the shell release script.
MODE_FLAGS: dict[str, str] = {
    "--status": "status",
    "--monitor": "monitor",
    "--check": "check",
}

# Root options that consume the following token.
_VALUE_OPTIONS = frozenset({"--repo"})


# Commands
app.command()(release)
app.command()(status)
app.command()(monitor)
app.command()(check)


@app.callback(invoke_without_command=True)
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    repo: Path | None = typer.Option(
        None,
        "--repo",
        help="Repository to release (default: the one containing the current directory)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if repo is not None:
        try:
            root = repo.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --repo: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.FAILURE))

        if not root.is_dir():
            typer.echo(f"error: --repo '{root}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.FAILURE))

        os.environ[REPO_ENV_VAR] = str(root)


def expand_mode_flags(args: Sequence[str]) -> list[str]:
    """Rewrite a leading mode flag into its command.

    ``shipit --monitor v1.2.3 --timeout 60`` becomes
    ``shipit monitor v1.2.3 --timeout 60``. Only a flag that comes before any
    command name is rewritten; root options such as ``--repo`` stay in front.
    """
    out = list(args)
    skip_value = False
    for i, token in enumerate(out):
        if skip_value:
            skip_value = False
            continue
        if token in MODE_FLAGS:
            out[i] = MODE_FLAGS[token]
            break
        if token in _VALUE_OPTIONS:
            skip_value = True
            continue
        if token == "--" or not token.startswith("-"):
            break
    return out


def main() -> None:
    app(args=expand_mode_flags(sys.argv[1:]), prog_name="shipit")
