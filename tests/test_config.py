"""Tests for settings persistence and models."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from vmonboard.config import AppConfig, ConfigStore, default_config_path


@pytest.fixture()
def tmp_config_path(tmp_path: Path) -> Path:
    """Provide a temporary settings file location."""

    return tmp_path / "config.json"


def test_default_config_path_uses_config_dir(tmp_path: Path) -> None:
    """The default path should live in the (overridden) config directory."""

    default_path = default_config_path()

    assert default_path == tmp_path / "settings" / "config.json"
    assert default_path.parent.exists()


def test_config_store_load_returns_defaults_for_missing_file(tmp_config_path: Path) -> None:
    """Loading a non-existent settings file should produce default values."""

    config = ConfigStore(path=tmp_config_path).load()

    assert config == AppConfig()
    assert config.default_remote_user == "ubuntu"
    assert config.github_api == "https://api.github.com"


def test_config_store_path_property(tmp_config_path: Path) -> None:
    """The path property should expose the configured location."""

    assert ConfigStore(path=tmp_config_path).path == tmp_config_path


def test_config_store_save_roundtrip(tmp_config_path: Path) -> None:
    """Saving and loading should round-trip settings."""

    store = ConfigStore(path=tmp_config_path)
    config = AppConfig(gitlab_host="gitlab.example.org", connect_timeout=20)

    store.save(config)

    assert store.load() == config
    payload = json.loads(tmp_config_path.read_text(encoding="utf-8"))
    assert payload["gitlab_host"] == "gitlab.example.org"
    assert payload["connect_timeout"] == 20
    assert not tmp_config_path.with_suffix(".tmp").exists()


@pytest.mark.parametrize("raw", ["not-json", "[]", "", "   "])
def test_config_store_load_with_unusable_content(tmp_config_path: Path, raw: str) -> None:
    """Invalid or non-object content should fall back to defaults."""

    tmp_config_path.write_text(raw, encoding="utf-8")

    assert ConfigStore(path=tmp_config_path).load() == AppConfig()


def test_from_payload_ignores_unknown_and_ill_typed_values() -> None:
    """Bad values fall back to their defaults instead of failing."""

    config = AppConfig.from_payload(
        {
            "gitlab_host": "  git.example.com ",
            "default_remote_user": 42,
            "connect_timeout": "soon",
            "identity_file": "",
            "unexpected": True,
        }
    )

    assert config.gitlab_host == "git.example.com"
    assert config.default_remote_user == "ubuntu"
    assert config.connect_timeout == 10
    assert config.identity_file == "~/.ssh/id_rsa"


def test_gitlab_urls_follow_host() -> None:
    config = AppConfig(gitlab_host="gitlab.example.org")

    assert config.gitlab_api == "https://gitlab.example.org/api/v4"
    assert config.gitlab_token_url == (
        "https://gitlab.example.org/-/user_settings/personal_access_tokens"
    )


def test_set_value_parses_integers() -> None:
    config = AppConfig()

    config.set_value("connect_timeout", " 30 ")

    assert config.connect_timeout == 30


@pytest.mark.parametrize(
    ("key", "value", "error"),
    [
        ("nope", "x", KeyError),
        ("gitlab_host", "   ", ValueError),
        ("connect_timeout", "abc", ValueError),
        ("connect_timeout", "0", ValueError),
    ],
)
def test_set_value_rejects_bad_input(key: str, value: str, error: type[Exception]) -> None:
    with pytest.raises(error):
        AppConfig().set_value(key, value)
