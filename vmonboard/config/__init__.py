"""Settings models and persistence helpers for vmonboard."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from vmonboard.paths import config_dir

__all__ = ["AppConfig", "ConfigStore", "default_config_path"]

_DEFAULT_CONFIG_FILENAME = "config.json"

DEFAULT_GITHUB_API = "https://api.github.com"
DEFAULT_GITHUB_TOKEN_URL = "https://github.com/settings/tokens"
DEFAULT_GITLAB_HOST = "gitlab.internal.sanger.ac.uk"
DEFAULT_REMOTE_USER = "ubuntu"
DEFAULT_IDENTITY_FILE = "~/.ssh/id_rsa"
DEFAULT_VERSIONS_INDEX_URL = "https://t113admin-openstack.cog.sanger.ac.uk/ansible/installs/index.html"
DEFAULT_CONNECT_TIMEOUT = 10


@dataclass(slots=True)
class AppConfig:
    """Top-level application settings."""

    github_api: str = DEFAULT_GITHUB_API
    github_token_url: str = DEFAULT_GITHUB_TOKEN_URL
    gitlab_host: str = DEFAULT_GITLAB_HOST
    default_remote_user: str = DEFAULT_REMOTE_USER
    identity_file: str = DEFAULT_IDENTITY_FILE
    versions_index_url: str = DEFAULT_VERSIONS_INDEX_URL
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT

    @property
    def gitlab_api(self) -> str:
        """Base URL of the GitLab v4 REST API."""

        return f"https://{self.gitlab_host}/api/v4"

    @property
    def gitlab_token_url(self) -> str:
        """Page where GitLab personal access tokens are created."""

        return f"https://{self.gitlab_host}/-/user_settings/personal_access_tokens"

    def to_payload(self) -> dict[str, Any]:
        """Serialize the settings into a JSON-compatible structure."""

        return {item.name: getattr(self, item.name) for item in fields(self)}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> AppConfig:
        """Create a settings instance from serialized data.

        Unknown keys are ignored and values of the wrong type fall back to the
        defaults so a hand-edited file never prevents the tool from starting.
        """

        config = cls()
        for item in fields(cls):
            if item.name not in payload:
                continue
            value = payload[item.name]
            expected = type(getattr(config, item.name))
            if expected is int:
                if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                    continue
            elif not isinstance(value, str) or not value.strip():
                continue
            else:
                value = value.strip()
            setattr(config, item.name, value)
        return config

    def set_value(self, key: str, raw_value: str) -> None:
        """Update a single setting from its textual representation."""

        names = [item.name for item in fields(self)]
        if key not in names:
            msg = f"Unknown setting '{key}'. Expected one of: {', '.join(names)}."
            raise KeyError(msg)
        value = raw_value.strip()
        if not value:
            msg = "Value must not be empty."
            raise ValueError(msg)
        if isinstance(getattr(self, key), int):
            try:
                number = int(value)
            except ValueError as exc:
                msg = f"Setting '{key}' expects a positive integer."
                raise ValueError(msg) from exc
            if number <= 0:
                msg = f"Setting '{key}' expects a positive integer."
                raise ValueError(msg)
            setattr(self, key, number)
            return
        setattr(self, key, value)


def default_config_path() -> Path:
    """Return the default location for the application's settings file."""

    return config_dir() / _DEFAULT_CONFIG_FILENAME


class ConfigStore:
    """Manage persistence of the application settings file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path if path is not None else default_config_path()

    @property
    def path(self) -> Path:
        """Expose the backing settings file path."""

        return self._path

    def load(self) -> AppConfig:
        """Load settings from disk, returning defaults when absent."""

        if not self._path.exists():
            return AppConfig()
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError:
            return AppConfig()
        if not raw.strip():
            return AppConfig()
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return AppConfig()
        if not isinstance(payload, dict):
            return AppConfig()
        return AppConfig.from_payload(payload)

    def save(self, config: AppConfig) -> None:
        """Persist the provided settings to disk atomically."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(config.to_payload(), indent=2, sort_keys=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(data, encoding="utf-8")
        tmp_path.replace(self._path)
