"""Result type for explicit error handling.

Release stages never raise for expected failures (dirty tree, missing tag,
failed CI run). They return ``Ok(value)`` or ``Err(error)`` and the caller
decides whether to continue, which keeps every stage gate visible at the
call site.

Usage:
    def read_version(path: Path) -> Result[Version, ReleaseError]:
        ...

    result = read_version(manifest)
    if isinstance(result, Err):
        console.error(result.error.message)
        return result
    console.print(f"current: {result.value}")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successful result.

    Attributes:
        value: The success value.
    """

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """A failed result.

    Attributes:
        error: The error value.
    """

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result: TypeAlias = Union[Ok[T], Err[E]]
