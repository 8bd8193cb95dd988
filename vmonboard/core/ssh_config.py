"""Maintenance of host stanzas in the local OpenSSH client config."""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from vmonboard.config import DEFAULT_IDENTITY_FILE
from vmonboard.core.models import TargetHost

__all__ = [
    "SSHConfigManager",
    "remove_host_block",
    "render_host_block",
]

_DIR_MODE = 0o700
_FILE_MODE = 0o600
_BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def _is_host_line(line: str) -> bool:
    parts = line.split()
    return bool(parts) and parts[0] == "Host" and not line[:1].isspace()


def render_host_block(target: TargetHost, identity_file: str = DEFAULT_IDENTITY_FILE) -> str:
    """Render the stanza written for ``target``."""

    lines = [
        f"Host {target.alias}",
        f"  HostName {target.ip}",
        f"  User {target.remote_user}",
        "  IdentitiesOnly yes",
        f"  IdentityFile {identity_file}",
        "  AddKeysToAgent yes",
        "  StrictHostKeyChecking accept-new",
    ]
    return "\n".join(lines) + "\n"


def remove_host_block(content: str, alias: str) -> str:
    """Drop every stanza whose ``Host`` line lists ``alias`` as one of its patterns.

    A stanza runs from its ``Host`` line up to, but not including, the next
    ``Host`` line. Stanzas that merely share a prefix with ``alias`` are kept.
    """

    kept: list[str] = []
    skipping = False
    for line in content.splitlines(keepends=True):
        if _is_host_line(line):
            skipping = alias in line.split()[1:]
            if skipping:
                continue
        if not skipping:
            kept.append(line)
    return "".join(kept)


class SSHConfigManager:
    """Create, back up and upsert the OpenSSH client config file."""

    def __init__(
        self,
        ssh_dir: Path,
        *,
        identity_file: str = DEFAULT_IDENTITY_FILE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ssh_dir = ssh_dir
        self._identity_file = identity_file
        self._clock = clock if clock is not None else datetime.now

    @property
    def ssh_dir(self) -> Path:
        """Directory containing the config and known-hosts files."""

        return self._ssh_dir

    @property
    def path(self) -> Path:
        """Location of the managed config file."""

        return self._ssh_dir / "config"

    def ensure_directory(self) -> None:
        """Create the SSH directory and restrict it to the owner."""

        self._ssh_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self._ssh_dir, _DIR_MODE)

    def backup(self) -> Path | None:
        """Copy an existing config aside, or create an empty one.

        Returns the backup location, or ``None`` when there was nothing to back
        up and a fresh file was created instead.
        """

        if self.path.is_file():
            stamp = self._clock().strftime(_BACKUP_TIMESTAMP_FORMAT)
            backup_path = self.path.with_name(f"{self.path.name}.bak.{stamp}")
            shutil.copy2(self.path, backup_path)
            return backup_path

        self.path.touch()
        os.chmod(self.path, _FILE_MODE)
        return None

    def upsert(self, target: TargetHost) -> None:
        """Replace any stanza for ``target.alias`` with a freshly rendered one."""

        current = self.path.read_text(encoding="utf-8") if self.path.exists() else ""
        remaining = remove_host_block(current, target.alias).rstrip()
        block = render_host_block(target, self._identity_file)
        updated = f"{remaining}\n\n{block}" if remaining else block

        tmp_path = self.path.with_suffix(".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(updated)
        os.chmod(tmp_path, _FILE_MODE)
        tmp_path.replace(self.path)
        os.chmod(self.path, _FILE_MODE)
