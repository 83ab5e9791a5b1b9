from __future__ import annotations

import typer


class TyperDecisions:
    """Interactive ``DecisionProvider`` backed by typer prompts."""

    def confirm(self, question: str) -> bool:
        return typer.confirm(question, default=False)

    def prompt_line(self, question: str, default: str) -> str:
        answer: str = typer.prompt(question, default=default, show_default=True)
        return answer
