"""Acquisition of personal access tokens for the git hosting providers."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

__all__ = [
    "BROWSER_OPENERS",
    "TokenRequest",
    "acquire_token",
    "open_in_browser",
]

BROWSER_OPENERS: tuple[tuple[str, ...], ...] = (
    ("xdg-open",),
    ("open",),
    ("start", ""),
)

TOKEN_NOTE = "OpenStack instance key upload (temporary)"


@dataclass(frozen=True, slots=True)
class TokenRequest:
    """Everything needed to ask the user for one provider's token."""

    provider: str
    env_var: str
    token_url: str
    instructions: tuple[str, ...]
    prompt: str


def open_in_browser(
    url: str,
    *,
    openers: Sequence[tuple[str, ...]] = BROWSER_OPENERS,
    which: Callable[[str], str | None] = shutil.which,
) -> bool:
    """Open ``url`` with the first platform opener available on ``PATH``.

    Only the first opener found is attempted. Launch failures are ignored and
    reported through the return value.
    """

    for opener in openers:
        executable = which(opener[0])
        if executable is None:
            continue
        try:
            completed = subprocess.run(
                [executable, *opener[1:], url],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError:
            return False
        return completed.returncode == 0
    return False


def acquire_token(
    request: TokenRequest,
    *,
    environ: Mapping[str, str],
    prompt: Callable[[str], str],
    notify: Callable[[str], None],
    opener: Callable[[str], bool] = open_in_browser,
) -> tuple[str | None, bool]:
    """Return ``(token, from_environment)`` for ``request``.

    A token already present in the environment is trusted as-is. Otherwise the
    user is shown the creation instructions, the token page is opened in a
    browser and the token is read with hidden input. An empty answer yields
    ``None`` so the caller can skip the provider.
    """

    existing = environ.get(request.env_var, "").strip()
    if existing:
        return existing, True

    for line in request.instructions:
        notify(line)
    notify(f"Open: {request.token_url}")
    opener(request.token_url)

    value = prompt(request.prompt).strip()
    return (value or None), False
