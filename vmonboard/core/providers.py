"""Public key registration against the GitHub and GitLab REST APIs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx

from vmonboard.core.models import StageOutcome

__all__ = [
    "API_TIMEOUT",
    "GitHubRegistrar",
    "GitLabRegistrar",
    "Registration",
    "key_title",
]

API_TIMEOUT = httpx.Timeout(20.0, connect=5.0)

_GITHUB_HEADERS = {"Accept": "application/vnd.github+json"}


@dataclass(frozen=True, slots=True)
class Registration:
    """Interpretation of a single key-registration response."""

    status: int | None
    outcome: StageOutcome
    message: str
    registered: bool = False


def key_title(alias: str, today: date) -> str:
    """Return the key title ``<alias>-<YYYY-MM-DD>``."""

    return f"{alias}-{today.isoformat()}"


def _status_label(status: int | None) -> str:
    return "000" if status is None else str(status)


def _post(client: httpx.Client, url: str, **kwargs: Any) -> int | None:
    try:
        response = client.post(url, timeout=API_TIMEOUT, **kwargs)
    except (httpx.HTTPError, httpx.InvalidURL):
        return None
    return response.status_code


class GitHubRegistrar:
    """Register SSH keys with the GitHub ``/user/keys`` endpoint."""

    name = "GitHub"

    def __init__(self, client: httpx.Client, api_base: str) -> None:
        self._client = client
        self._api_base = api_base.rstrip("/")

    def _headers(self, token: str) -> dict[str, str]:
        return {**_GITHUB_HEADERS, "Authorization": f"Bearer {token}"}

    def check_token(self, token: str) -> int | None:
        """Probe ``GET /user`` and return the HTTP status (``None`` on transport errors)."""

        try:
            response = self._client.get(
                f"{self._api_base}/user",
                headers=self._headers(token),
                timeout=API_TIMEOUT,
            )
        except (httpx.HTTPError, httpx.InvalidURL):
            return None
        return response.status_code

    def register(self, token: str, title: str, public_key: str) -> Registration:
        status = _post(
            self._client,
            f"{self._api_base}/user/keys",
            headers=self._headers(token),
            json={"title": title, "key": public_key},
        )
        return self.interpret(status)

    @staticmethod
    def interpret(status: int | None) -> Registration:
        """Map a GitHub response status onto a registration outcome.

        Both 201 (created) and 422 (key already in use) leave the key usable
        from the remote machine, so both count as registered.
        """

        if status == 201:
            return Registration(status, StageOutcome.SUCCESS, "GitHub: key added.", registered=True)
        if status == 422:
            return Registration(
                status,
                StageOutcome.SUCCESS,
                "GitHub: key already present (ok).",
                registered=True,
            )
        if status in (401, 403):
            return Registration(
                status,
                StageOutcome.WARNING,
                f"GitHub: unauthorized/forbidden (HTTP {status}). "
                "Check classic token + admin:public_key scope.",
            )
        return Registration(
            status, StageOutcome.WARNING, f"GitHub: unexpected HTTP {_status_label(status)}."
        )


class GitLabRegistrar:
    """Register SSH keys with a GitLab instance's ``/user/keys`` endpoint."""

    name = "GitLab"

    def __init__(self, client: httpx.Client, api_base: str) -> None:
        self._client = client
        self._api_base = api_base.rstrip("/")

    def register(self, token: str, title: str, public_key: str) -> Registration:
        status = _post(
            self._client,
            f"{self._api_base}/user/keys",
            headers={"PRIVATE-TOKEN": token},
            data={"title": title, "key": public_key},
        )
        return self.interpret(status)

    @staticmethod
    def interpret(status: int | None) -> Registration:
        if status == 201:
            return Registration(status, StageOutcome.SUCCESS, "GitLab: key added.", registered=True)
        if status == 400:
            return Registration(
                status,
                StageOutcome.WARNING,
                "GitLab: key already present or invalid input (HTTP 400).",
            )
        if status == 401:
            return Registration(status, StageOutcome.WARNING, "GitLab: unauthorized (check token).")
        return Registration(
            status, StageOutcome.WARNING, f"GitLab: unexpected HTTP {_status_label(status)}."
        )
