"""Human-in-the-loop decision points.

The release flow asks three kinds of question: continue on an unexpected
branch, which commit message to use, and the final go/no-go before anything
is committed. They go through ``DecisionProvider`` so headless runs and tests
can answer deterministically.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol


class DecisionProvider(Protocol):
    def confirm(self, question: str) -> bool: ...

    def prompt_line(self, question: str, default: str) -> str: ...


class AutoDecisions:
    """Answer yes to every confirmation and accept every default (``--yes``)."""

    def confirm(self, question: str) -> bool:
        return True

    def prompt_line(self, question: str, default: str) -> str:
        return default


def _empty_questions() -> list[str]:
    return []


@dataclass
class ScriptedDecisions:
    """Replay pre-recorded answers in order.

    Confirmations beyond the script answer ``default_confirm``; prompts beyond
    the script return their default. Every question is recorded.
    """

    confirms: deque[bool] = field(default_factory=deque)
    lines: deque[str] = field(default_factory=deque)
    default_confirm: bool = True
    asked: list[str] = field(default_factory=_empty_questions)

    @classmethod
    def of(
        cls,
        *,
        confirms: Iterable[bool] = (),
        lines: Iterable[str] = (),
        default_confirm: bool = True,
    ) -> ScriptedDecisions:
        return cls(
            confirms=deque(confirms),
            lines=deque(lines),
            default_confirm=default_confirm,
        )

    def confirm(self, question: str) -> bool:
        self.asked.append(question)
        if self.confirms:
            return self.confirms.popleft()
        return self.default_confirm

    def prompt_line(self, question: str, default: str) -> str:
        self.asked.append(question)
        if self.lines:
            return self.lines.popleft()
        return default
