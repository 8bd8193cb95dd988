"""Utilities for resolving filesystem locations used by vmonboard."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_path

__all__ = ["config_dir", "ssh_dir"]


def config_dir() -> Path:
    """Return the directory holding the vmonboard settings file.

    The path defaults to the platform-specific user config directory exposed
    by :mod:`platformdirs`. When the ``VMONBOARD_CONFIG_DIR`` environment
    variable is set the value is treated as an override, allowing tests or
    alternative deployments to isolate their state.
    """

    override = os.getenv("VMONBOARD_CONFIG_DIR")
    path = Path(override).expanduser() if override else user_config_path("vmonboard")

    path.mkdir(parents=True, exist_ok=True)
    return path


def ssh_dir() -> Path:
    """Return the local OpenSSH client directory (``~/.ssh`` by default).

    ``VMONBOARD_SSH_DIR`` redirects every SSH config and known-hosts edit to a
    different directory. The directory is not created here; callers decide on
    its permissions.
    """

    override = os.getenv("VMONBOARD_SSH_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".ssh"
