"""Protocol definitions for vmonboard core services."""

from __future__ import annotations

import subprocess
from typing import Protocol

from vmonboard.core.remote import RemoteCommand


class RemoteRunner(Protocol):
    """Protocol for executing remote commands on the target machine."""

    def run(
        self,
        command: RemoteCommand,
        *,
        capture: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Execute ``command`` and return the completed process."""


class Console(Protocol):
    """Protocol for reporting progress to the operator."""

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def next_steps(self, message: str) -> None: ...


class Prompter(Protocol):
    """Protocol for interactive questions asked during a run."""

    def confirm(self, question: str) -> bool:
        """Ask a yes/no question defaulting to no."""

    def text(self, question: str) -> str:
        """Ask for a free-form answer; an empty string means skip."""

    def secret(self, question: str) -> str:
        """Ask for a value without echoing it."""
