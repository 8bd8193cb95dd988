"""Value objects shared by the onboarding stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

__all__ = ["RunState", "StageOutcome", "StageResult", "TargetHost"]


@dataclass(frozen=True, slots=True)
class TargetHost:
    """The virtual machine being onboarded."""

    ip: str
    alias: str
    remote_user: str

    @property
    def destination(self) -> str:
        """Return the ``user@ip`` string handed to ``ssh``."""

        return f"{self.remote_user}@{self.ip}"


class StageOutcome(str, Enum):
    """How a single onboarding stage finished."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class StageResult:
    """Outcome of one stage, kept for the end-of-run summary."""

    stage: str
    outcome: StageOutcome
    message: str = ""


@dataclass(slots=True)
class RunState:
    """Mutable state threaded through every stage of a single run."""

    target: TargetHost
    dotfiles_url: str | None = None
    versions_url: str | None = None
    github_token: str | None = None
    gitlab_token: str | None = None
    public_key: str | None = None
    github_registered: bool = False
    results: list[StageResult] = field(default_factory=list)

    def record(self, stage: str, outcome: StageOutcome, message: str = "") -> StageResult:
        """Append a stage result and return it."""

        result = StageResult(stage=stage, outcome=outcome, message=message)
        self.results.append(result)
        return result

    def summary(self) -> list[StageResult]:
        """Return the recorded results in execution order."""

        return list(self.results)

    @property
    def warnings(self) -> list[StageResult]:
        """Results that finished with an advisory warning."""

        return [item for item in self.results if item.outcome is StageOutcome.WARNING]
