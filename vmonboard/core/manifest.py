"""Runtime version manifests: fetching, extraction and diffing."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import httpx

__all__ = [
    "MANIFEST_TIMEOUT",
    "extract_versions",
    "fetch_manifest",
    "parse_installed",
    "pending_versions",
]

MANIFEST_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


def fetch_manifest(url: str, client: httpx.Client) -> dict[str, Any] | None:
    """Download and decode the manifest at ``url``.

    Returns ``None`` for an empty URL or one that cannot be parsed, any
    transport or HTTP error status, and bodies that are not a JSON object.
    """

    if not url.strip():
        return None
    try:
        response = client.get(url.strip(), timeout=MANIFEST_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, httpx.InvalidURL, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def extract_versions(manifest: dict[str, Any] | None, key: str) -> list[str]:
    """Return ``manifest["software"][key]`` as a list of version strings.

    Order and duplicates are preserved. Numbers are accepted and stringified;
    anything else, and blank strings, are dropped.
    """

    if not manifest:
        return []
    software = manifest.get("software")
    if not isinstance(software, dict):
        return []
    raw_versions = software.get(key)
    if not isinstance(raw_versions, list):
        return []
    versions: list[str] = []
    for item in raw_versions:
        if isinstance(item, bool):
            continue
        if isinstance(item, (int, float)):
            item = str(item)
        if not isinstance(item, str):
            continue
        normalized = item.strip()
        if normalized:
            versions.append(normalized)
    return versions


def parse_installed(output: str) -> set[str]:
    """Parse the one-version-per-line listing printed by ``rig`` or ``pyenv``."""

    return {line.strip() for line in output.splitlines() if line.strip()}


def pending_versions(wanted: Iterable[str], installed: Iterable[str]) -> list[str]:
    """Return the wanted versions not yet installed, keeping manifest order."""

    present = set(installed)
    return [version for version in wanted if version not in present]
