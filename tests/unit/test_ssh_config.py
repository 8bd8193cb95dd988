"""Tests for SSH client config stanza management."""

from __future__ import annotations

import os
import stat
from datetime import datetime
from pathlib import Path

import pytest

from vmonboard.core.models import TargetHost
from vmonboard.core import ssh_config
from vmonboard.core.ssh_config import SSHConfigManager, remove_host_block, render_host_block

EXISTING_CONFIG = """\
Host bastion
  HostName 10.0.0.1
  User admin

Host iv3-dev-4 iv3
  HostName 172.27.21.1
  User old

Host iv3-dev-40
  HostName 172.27.21.40
"""


@pytest.fixture()
def manager(tmp_path: Path) -> SSHConfigManager:
    return SSHConfigManager(tmp_path / "ssh", clock=lambda: datetime(2024, 5, 1, 9, 30, 15))


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def _host_lines(text: str, alias: str) -> list[str]:
    return [line for line in text.splitlines() if line.split()[:1] == ["Host"] and alias in line.split()[1:]]


def test_render_host_block_lists_all_fields() -> None:
    """The rendered stanza should carry every client option."""

    block = render_host_block(TargetHost("172.27.21.59", "iv3-dev-4", "ubuntu"))

    assert block.splitlines() == [
        "Host iv3-dev-4",
        "  HostName 172.27.21.59",
        "  User ubuntu",
        "  IdentitiesOnly yes",
        "  IdentityFile ~/.ssh/id_rsa",
        "  AddKeysToAgent yes",
        "  StrictHostKeyChecking accept-new",
    ]


def test_remove_host_block_matches_exact_alias_token() -> None:
    """Only stanzas listing the alias itself are removed, not prefix matches."""

    remaining = remove_host_block(EXISTING_CONFIG, "iv3-dev-4")

    assert "172.27.21.1" not in remaining
    assert "Host iv3-dev-40" in remaining
    assert "Host bastion" in remaining
    assert "User admin" in remaining


def test_remove_host_block_without_match_is_identity() -> None:
    """Content without the alias should be returned untouched."""

    assert remove_host_block(EXISTING_CONFIG, "missing") == EXISTING_CONFIG


def test_ensure_directory_sets_owner_only_mode(manager: SSHConfigManager) -> None:
    """The SSH directory should be created with mode 700."""

    manager.ensure_directory()

    assert manager.ssh_dir.is_dir()
    assert _mode(manager.ssh_dir) == 0o700


def test_backup_creates_empty_config_when_missing(manager: SSHConfigManager) -> None:
    """Without a config, backup should create an empty 600 file."""

    manager.ensure_directory()

    assert manager.backup() is None
    assert manager.path.read_text(encoding="utf-8") == ""
    assert _mode(manager.path) == 0o600


def test_backup_copies_existing_config_with_timestamp(manager: SSHConfigManager) -> None:
    """An existing config should be copied to a timestamped sibling."""

    manager.ensure_directory()
    manager.path.write_text(EXISTING_CONFIG, encoding="utf-8")

    backup = manager.backup()

    assert backup == manager.ssh_dir / "config.bak.20240501-093015"
    assert backup.read_text(encoding="utf-8") == EXISTING_CONFIG


def test_upsert_replaces_previous_block(manager: SSHConfigManager) -> None:
    """Upserting should drop the old stanza and append the new one."""

    manager.ensure_directory()
    manager.path.write_text(EXISTING_CONFIG, encoding="utf-8")

    manager.upsert(TargetHost("172.27.21.59", "iv3-dev-4", "ubuntu"))

    text = manager.path.read_text(encoding="utf-8")
    assert len(_host_lines(text, "iv3-dev-4")) == 1
    assert "HostName 172.27.21.1\n" not in text
    assert text.endswith(render_host_block(TargetHost("172.27.21.59", "iv3-dev-4", "ubuntu")))
    assert "Host iv3-dev-40" in text
    assert _mode(manager.path) == 0o600
    assert not manager.path.with_suffix(".tmp").exists()


def test_upsert_twice_keeps_single_block_with_latest_values(manager: SSHConfigManager) -> None:
    """Re-running for the same alias must never duplicate the stanza."""

    manager.ensure_directory()
    manager.backup()

    manager.upsert(TargetHost("172.27.21.59", "iv3-dev-4", "ubuntu"))
    first = manager.path.read_text(encoding="utf-8")
    manager.upsert(TargetHost("172.27.21.60", "iv3-dev-4", "centos"))
    manager.upsert(TargetHost("172.27.21.60", "iv3-dev-4", "centos"))

    text = manager.path.read_text(encoding="utf-8")
    assert len(_host_lines(text, "iv3-dev-4")) == 1
    assert "HostName 172.27.21.60" in text
    assert "User centos" in text
    assert "172.27.21.59" not in text
    assert first.startswith("Host iv3-dev-4\n")
    assert "\n\n\n" not in text


def test_upsert_on_fresh_file_has_no_leading_blank_line(manager: SSHConfigManager) -> None:
    """A brand-new config should start directly with the stanza."""

    manager.ensure_directory()

    manager.upsert(TargetHost("10.1.1.1", "fresh", "ubuntu"))

    assert manager.path.read_text(encoding="utf-8").startswith("Host fresh\n")


def test_custom_identity_file_is_used(tmp_path: Path) -> None:
    """The identity file from the settings should appear in the stanza."""

    manager = SSHConfigManager(tmp_path / "ssh", identity_file="~/.ssh/work_rsa")
    manager.ensure_directory()

    manager.upsert(TargetHost("10.1.1.1", "work", "ubuntu"))

    assert "  IdentityFile ~/.ssh/work_rsa\n" in manager.path.read_text(encoding="utf-8")


def test_upsert_writes_through_owner_only_file(
    manager: SSHConfigManager,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The temporary file is private from creation, not only after the write."""

    manager.ensure_directory()
    chmods: list[Path] = []
    monkeypatch.setattr(ssh_config.os, "chmod", lambda path, mode: chmods.append(Path(path)))
    previous_umask = os.umask(0o022)
    try:
        manager.upsert(TargetHost("10.1.1.1", "private", "ubuntu"))
    finally:
        os.umask(previous_umask)

    assert chmods
    assert _mode(manager.path) == 0o600
    assert not manager.path.with_suffix(".tmp").exists()
