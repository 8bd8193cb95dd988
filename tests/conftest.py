"""Shared pytest configuration and fakes for the test suite."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from vmonboard.core.remote import RemoteCommand


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Tag every test that is not marked as system as a unit test."""

    for item in items:
        if "system" not in item.keywords:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def isolated_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Keep settings and SSH files of every test inside ``tmp_path``."""

    monkeypatch.setenv("VMONBOARD_CONFIG_DIR", str(tmp_path / "settings"))
    monkeypatch.setenv("VMONBOARD_SSH_DIR", str(tmp_path / "ssh"))
    for name in ("GITHUB_PAT", "GITLAB_PAT", "VMONBOARD_REMOTE_USER"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


Responder = Callable[[RemoteCommand], subprocess.CompletedProcess[str] | None]


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    """Build a completed process with text output."""

    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@dataclass
class FakeRemote:
    """Record remote commands and answer them from registered responders."""

    responders: list[Responder] = field(default_factory=list)
    calls: list[tuple[RemoteCommand, bool]] = field(default_factory=list)

    def respond(self, responder: Responder) -> None:
        self.responders.append(responder)

    def run(
        self,
        command: RemoteCommand,
        *,
        capture: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        self.calls.append((command, capture))
        for responder in self.responders:
            result = responder(command)
            if result is not None:
                return result
        return completed()

    @property
    def labels(self) -> list[str]:
        return [command.label for command, _ in self.calls]


@dataclass
class RecordingConsole:
    """Collect every message instead of printing it."""

    messages: list[tuple[str, str]] = field(default_factory=list)

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def next_steps(self, message: str) -> None:
        self.messages.append(("next_steps", message))

    def of(self, level: str) -> list[str]:
        return [text for kind, text in self.messages if kind == level]


@dataclass
class ScriptedPrompter:
    """Answer prompts from pre-seeded queues; an exhausted queue answers no/empty."""

    confirms: list[bool] = field(default_factory=list)
    texts: list[str] = field(default_factory=list)
    secrets: list[str] = field(default_factory=list)
    asked: list[str] = field(default_factory=list)

    def confirm(self, question: str) -> bool:
        self.asked.append(question)
        return self.confirms.pop(0) if self.confirms else False

    def text(self, question: str) -> str:
        self.asked.append(question)
        return self.texts.pop(0) if self.texts else ""

    def secret(self, question: str) -> str:
        self.asked.append(question)
        return self.secrets.pop(0) if self.secrets else ""


@pytest.fixture()
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture()
def recording_console() -> RecordingConsole:
    return RecordingConsole()


@pytest.fixture()
def scripted_prompter() -> ScriptedPrompter:
    return ScriptedPrompter()
