"""Best-effort pre-seeding of ``known_hosts`` for a new machine."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from vmonboard.core.models import StageOutcome

__all__ = ["KEY_TYPES", "lookup_known_host", "preseed_known_hosts", "scan_host_keys"]

KEY_TYPES: tuple[str, ...] = ("ed25519", "rsa")
_SCAN_TIMEOUT = 15


def scan_host_keys(ip: str, key_type: str, *, timeout: float = _SCAN_TIMEOUT) -> str:
    """Return hashed ``ssh-keyscan`` output for one key type, or an empty string."""

    argv: Sequence[str] = ["ssh-keyscan", "-H", "-t", key_type, ip]
    try:
        completed = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return ""
    if completed.returncode != 0:
        return ""
    return completed.stdout.strip()


def lookup_known_host(path: Path, ip: str, *, timeout: float = _SCAN_TIMEOUT) -> bool:
    """Ask ``ssh-keygen -F`` whether ``path`` already holds a key for ``ip``.

    Hashed entries written by ``ssh-keyscan -H`` are only found this way.
    """

    argv: Sequence[str] = ["ssh-keygen", "-F", ip, "-f", str(path)]
    try:
        completed = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return completed.returncode == 0 and bool(completed.stdout.strip())


def _already_known(path: Path, ip: str, lookup: Callable[[Path, str], bool]) -> bool:
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
    return ip in content or lookup(path, ip)


def preseed_known_hosts(
    path: Path,
    ip: str,
    *,
    scanner: Callable[[str, str], str] = scan_host_keys,
    lookup: Callable[[Path, str], bool] = lookup_known_host,
) -> tuple[StageOutcome, str]:
    """Append the host keys of ``ip`` to ``path`` unless the IP is already listed.

    The IP counts as listed when it appears literally or when ``lookup`` finds
    a hashed entry for it.

    The ed25519 key is preferred and RSA is only scanned when no ed25519 key
    was returned. No failure here is ever raised to the caller.
    """

    if _already_known(path, ip, lookup):
        return StageOutcome.SKIPPED, f"{ip} already present in {path}"

    for key_type in KEY_TYPES:
        entries = scanner(ip, key_type)
        if not entries:
            continue
        try:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(entries + "\n")
        except OSError as exc:
            return StageOutcome.WARNING, f"could not update {path}: {exc}"
        return StageOutcome.SUCCESS, f"Pre-seeded known_hosts for {ip} ({key_type})"

    return StageOutcome.WARNING, f"no host keys could be scanned for {ip}"
