"""Input validation for addresses, aliases and dotfiles repository URIs."""

from __future__ import annotations

import re

__all__ = [
    "DOTFILES_URI_EXAMPLES",
    "ValidationError",
    "is_valid_dotfiles_uri",
    "is_valid_ipv4",
    "normalize_alias",
    "validate_dotfiles_uri",
    "validate_ipv4",
]

_IPV4_PATTERN = re.compile(r"^[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}$")
_ALIAS_PATTERN = re.compile(r"^[A-Za-z0-9.-]+$")
_DOTFILES_URI_PATTERN = re.compile(
    r"^git@[A-Za-z0-9.-]+:[A-Za-z0-9._-]+/[A-Za-z0-9._-]+(?:\.git)?$"
)

DOTFILES_URI_EXAMPLES = (
    "git@github.com:user/dotfiles.git",
    "git@gitlab.internal.sanger.ac.uk:user/dotfiles.git",
)


class ValidationError(ValueError):
    """Raised when command-line input is malformed."""


def is_valid_ipv4(value: str) -> bool:
    """Return whether ``value`` is a dotted quad with every octet in 0-255."""

    if not _IPV4_PATTERN.fullmatch(value):
        return False
    return all(int(octet) <= 255 for octet in value.split("."))


def validate_ipv4(value: str) -> str:
    """Return ``value`` unchanged or raise :class:`ValidationError`."""

    if not is_valid_ipv4(value):
        msg = (
            f"Invalid IP address format: '{value}'. "
            "Expected format: xxx.xxx.xxx.xxx (e.g., 172.27.21.59)"
        )
        raise ValidationError(msg)
    return value


def normalize_alias(value: str) -> str:
    """Map underscores to hyphens and check the result is a usable host alias."""

    alias = value.replace("_", "-")
    if not alias:
        raise ValidationError("Hostname cannot be empty.")
    if not _ALIAS_PATTERN.fullmatch(alias):
        msg = (
            f"Invalid hostname '{alias}'. Only alphanumeric characters, "
            "hyphens, and dots are allowed."
        )
        raise ValidationError(msg)
    return alias


def is_valid_dotfiles_uri(value: str) -> bool:
    """Return whether ``value`` looks like ``git@host:user/repo[.git]``."""

    return bool(_DOTFILES_URI_PATTERN.fullmatch(value))


def validate_dotfiles_uri(value: str) -> str:
    """Return ``value`` unchanged or raise :class:`ValidationError`."""

    if not is_valid_dotfiles_uri(value):
        examples = " or ".join(DOTFILES_URI_EXAMPLES)
        msg = f"Invalid dotfiles URL format: '{value}'. Expected SSH format: {examples}"
        raise ValidationError(msg)
    return value
