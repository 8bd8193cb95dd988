"""Terminal reporting and prompting backed by Typer."""

from __future__ import annotations

from collections.abc import Iterable

import typer

from vmonboard.core.models import StageOutcome, StageResult

__all__ = ["TyperConsole", "TyperPrompter", "echo_summary"]

_OUTCOME_COLOURS = {
    StageOutcome.SUCCESS: typer.colors.GREEN,
    StageOutcome.SKIPPED: typer.colors.BLUE,
    StageOutcome.WARNING: typer.colors.YELLOW,
}


class TyperConsole:
    """Write prefixed, coloured diagnostics to stderr."""

    def info(self, message: str) -> None:
        typer.secho(f"INFO: {message}", fg=typer.colors.GREEN, err=True)

    def warning(self, message: str) -> None:
        typer.secho(f"WARNING: {message}", fg=typer.colors.YELLOW, err=True)

    def error(self, message: str) -> None:
        typer.secho(f"ERROR: {message}", fg=typer.colors.RED, err=True)

    def next_steps(self, message: str) -> None:
        typer.secho(f"NEXT STEPS: {message}", fg=typer.colors.BLUE, err=True)


class TyperPrompter:
    """Interactive questions; every prompt blocks until answered."""

    def confirm(self, question: str) -> bool:
        return typer.confirm(question, default=False, err=True)

    def text(self, question: str) -> str:
        return typer.prompt(question, default="", show_default=False, err=True)

    def secret(self, question: str) -> str:
        return typer.prompt(
            question,
            default="",
            show_default=False,
            hide_input=True,
            err=True,
        )


def echo_summary(results: Iterable[StageResult]) -> None:
    """Print one line per stage result to stderr."""

    typer.secho("Summary:", bold=True, err=True)
    for result in results:
        colour = _OUTCOME_COLOURS[result.outcome]
        line = f"  [{result.outcome.value}] {result.stage}"
        if result.message:
            line = f"{line}: {result.message}"
        typer.secho(line, fg=colour, err=True)
