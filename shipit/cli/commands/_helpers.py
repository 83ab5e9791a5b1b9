"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from shipit.core.errors import ErrorCode
from shipit.core.result import Err, Result
from shipit.output.console import ConsoleProtocol, Style
from shipit.services.release.errors import ReleaseError

T = TypeVar("T")

if TYPE_CHECKING:
    from shipit.cli.context import CLIContext


def report_error(console: ConsoleProtocol, error: ReleaseError) -> None:
    console.error(error.message)
    if error.last_step:
        console.print(f"last completed step: {error.last_step}", Style.DIM)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def fail(console: ConsoleProtocol, error: ReleaseError) -> NoReturn:
    report_error(console, error)
    raise typer.Exit(code=int(ErrorCode.FAILURE))


def exit_on_error(result: Result[T, ReleaseError], ctx: CLIContext) -> T:
    """Return the Ok value, or report the error and exit 1.

    This helper reduces boilerplate for the common pattern:
        match result:
            case Err(e):
                ctx.console.error(e.message)
                if e.hint:
                    ctx.console.print(f"hint: {e.hint}", Style.DIM)
                raise typer.Exit(code=int(ErrorCode.FAILURE))
            case Ok(value):
                ...
    """
    if isinstance(result, Err):
        fail(ctx.console, result.error)
    return result.value
