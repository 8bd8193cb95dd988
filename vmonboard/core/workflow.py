"""Sequential onboarding workflow for a freshly provisioned machine."""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from pathlib import Path
from typing import Any

import httpx

from vmonboard.config import AppConfig
from vmonboard.core import remote
from vmonboard.core.interfaces import Console, Prompter, RemoteRunner
from vmonboard.core.known_hosts import lookup_known_host, preseed_known_hosts, scan_host_keys
from vmonboard.core.manifest import (
    extract_versions,
    fetch_manifest,
    parse_installed,
    pending_versions,
)
from vmonboard.core.models import RunState, StageOutcome
from vmonboard.core.providers import GitHubRegistrar, GitLabRegistrar, Registration, key_title
from vmonboard.core.remote import PYTHON, R, RemoteCommand, RemoteCommandError, Runtime
from vmonboard.core.ssh_config import SSHConfigManager
from vmonboard.core.tokens import TOKEN_NOTE, TokenRequest, acquire_token, open_in_browser
from vmonboard.core.validation import DOTFILES_URI_EXAMPLES, is_valid_dotfiles_uri

__all__ = [
    "REQUIRED_TOOLS",
    "MissingToolError",
    "Onboarding",
    "OnboardingError",
    "assert_tools",
]

REQUIRED_TOOLS: tuple[str, ...] = ("ssh", "ssh-keyscan")
GITHUB_GIT_HOST = "github.com"
KEY_PROPAGATION_DELAY = 2.0
_SSH_CONNECTION_FAILURE = 255


class OnboardingError(RuntimeError):
    """Raised when a run cannot continue."""


class MissingToolError(OnboardingError):
    """Raised when required local executables are not on ``PATH``."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(f"Required tool not found: {', '.join(self.missing)}")


def assert_tools(
    tools: Iterable[str] = REQUIRED_TOOLS,
    *,
    which: Callable[[str], str | None] = shutil.which,
) -> None:
    """Raise :class:`MissingToolError` unless every tool resolves on ``PATH``."""

    missing = [tool for tool in tools if which(tool) is None]
    if missing:
        raise MissingToolError(missing)


def github_token_request(config: AppConfig) -> TokenRequest:
    return TokenRequest(
        provider="GitHub",
        env_var="GITHUB_PAT",
        token_url=config.github_token_url,
        instructions=(
            "Create a Personal access token (classic) with:",
            "  - Type: classic",
            "  - Scope: admin:public_key",
            "  - Expiration: 7 days",
            f"  - Note/name: '{TOKEN_NOTE}'",
        ),
        prompt="Paste new GitHub token (classic, admin:public_key, 7-day)",
    )


def gitlab_token_request(config: AppConfig) -> TokenRequest:
    return TokenRequest(
        provider="GitLab",
        env_var="GITLAB_PAT",
        token_url=config.gitlab_token_url,
        instructions=(
            f"Create a token on {config.gitlab_host} with:",
            "  - Scope: api",
            "  - Expiration: 7 days",
            f"  - Name: '{TOKEN_NOTE}'",
        ),
        prompt="Paste new GitLab token (api scope, 7-day)",
    )


class Onboarding:
    """Run every onboarding stage, in order, for one target machine.

    Stages that fail with an advisory problem record a warning in the run
    state and the run carries on. Only local SSH config errors and failures to
    create or read the remote keypair raise :class:`OnboardingError`.
    """

    def __init__(
        self,
        state: RunState,
        *,
        config: AppConfig,
        console: Console,
        prompter: Prompter,
        runner: RemoteRunner,
        http: httpx.Client,
        ssh_config: SSHConfigManager,
        environ: Mapping[str, str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
        scanner: Callable[[str, str], str] = scan_host_keys,
        lookup: Callable[[Path, str], bool] = lookup_known_host,
        opener: Callable[[str], bool] = open_in_browser,
    ) -> None:
        self._state = state
        self._config = config
        self._console = console
        self._prompter = prompter
        self._runner = runner
        self._http = http
        self._ssh_config = ssh_config
        self._environ = environ if environ is not None else os.environ
        self._sleep = sleep
        self._today = today
        self._scanner = scanner
        self._lookup = lookup
        self._opener = opener
        self._github = GitHubRegistrar(http, config.github_api)
        self._gitlab = GitLabRegistrar(http, config.gitlab_api)

    @property
    def state(self) -> RunState:
        return self._state

    def run(self) -> RunState:
        """Execute all stages and return the populated run state."""

        self.configure_ssh()
        self.preseed_known_hosts()
        self.ensure_remote_keypair()
        self.fetch_public_key()

        self.acquire_github_token()
        self.register_github_key()
        self.acquire_gitlab_token()
        self.register_gitlab_key()

        self.smoke_test()
        self.setup_dotfiles()
        self.install_runtime_versions()
        return self._state

    # Local SSH client state

    def configure_ssh(self) -> None:
        target = self._state.target
        try:
            self._ssh_config.ensure_directory()
            backup = self._ssh_config.backup()
            if backup is not None:
                self._console.info(f"Backed up SSH config to {backup}")
            else:
                self._console.info(f"Created new SSH config at {self._ssh_config.path}")
            self._ssh_config.upsert(target)
        except OSError as exc:
            raise OnboardingError(f"Could not update {self._ssh_config.path}: {exc}") from exc
        message = f"Upserted SSH config block for '{target.alias}'."
        self._console.info(message)
        self._state.record("ssh-config", StageOutcome.SUCCESS, message)

    def preseed_known_hosts(self) -> None:
        path = self._ssh_config.ssh_dir / "known_hosts"
        outcome, message = preseed_known_hosts(
            path,
            self._state.target.ip,
            scanner=self._scanner,
            lookup=self._lookup,
        )
        if outcome is StageOutcome.WARNING:
            self._console.warning(message)
        else:
            self._console.info(message)
        self._state.record("known-hosts", outcome, message)

    # Remote keypair

    def _check(self, command: RemoteCommand) -> subprocess.CompletedProcess[str]:
        completed = self._runner.run(command)
        if completed.returncode != 0:
            raise RemoteCommandError(command.label, completed.returncode, completed.stderr or "")
        return completed

    def ensure_remote_keypair(self) -> None:
        target = self._state.target
        self._console.info(f"Ensuring remote id_rsa keypair exists on {target.alias}...")
        try:
            self._check(remote.ensure_keypair())
        except RemoteCommandError as exc:
            msg = f"Could not ensure a keypair on {target.destination}: {exc}"
            raise OnboardingError(msg) from exc
        self._state.record("remote-keypair", StageOutcome.SUCCESS, "id_rsa present")

    def fetch_public_key(self) -> None:
        try:
            completed = self._check(remote.read_public_key())
        except RemoteCommandError as exc:
            raise OnboardingError(f"Failed to read remote public key: {exc}") from exc
        public_key = (completed.stdout or "").strip()
        if not public_key:
            raise OnboardingError("Failed to read remote public key: output was empty.")
        self._state.public_key = public_key
        self._console.info("Fetched remote public key.")
        self._state.record("public-key", StageOutcome.SUCCESS, public_key.split()[0])

    # Tokens and key registration

    def _acquire(self, request: TokenRequest) -> tuple[str | None, bool]:
        stage = f"{request.provider.lower()}-token"
        if not self._environ.get(request.env_var, "").strip():
            self._console.warning(f"{request.env_var} not set.")
        token, from_env = acquire_token(
            request,
            environ=self._environ,
            prompt=self._prompter.secret,
            notify=self._console.next_steps,
            opener=self._opener,
        )
        if from_env:
            message = f"{request.env_var} already set (using existing token)."
            self._console.info(message)
            self._state.record(stage, StageOutcome.SUCCESS, message)
        elif token is None:
            message = f"Skipping {request.provider} key registration (no token provided)."
            self._console.info(message)
            self._state.record(stage, StageOutcome.SKIPPED, message)
        return token, from_env

    def acquire_github_token(self) -> None:
        token, from_env = self._acquire(github_token_request(self._config))
        self._state.github_token = token
        if token is None or from_env:
            return

        status = self._github.check_token(token)
        if status in (401, 403):
            message = (
                f"GitHub token didn't authenticate (HTTP {status}). "
                "Ensure it's a classic token with admin:public_key."
            )
            self._console.warning(message)
            self._state.record("github-token", StageOutcome.WARNING, message)
            return
        self._state.record("github-token", StageOutcome.SUCCESS, "token entered interactively")

    def acquire_gitlab_token(self) -> None:
        token, from_env = self._acquire(gitlab_token_request(self._config))
        self._state.gitlab_token = token
        if token is not None and not from_env:
            self._state.record("gitlab-token", StageOutcome.SUCCESS, "token entered interactively")

    def _register(
        self,
        registrar: GitHubRegistrar | GitLabRegistrar,
        token: str | None,
        label: str,
    ) -> Registration | None:
        stage = f"{registrar.name.lower()}-key"
        if not token:
            message = f"Skipping {registrar.name} key registration (no token)."
            self._console.info(message)
            self._state.record(stage, StageOutcome.SKIPPED, message)
            return None

        self._console.info(f"Registering key with {label}...")
        title = key_title(self._state.target.alias, self._today())
        result = registrar.register(token, title, self._state.public_key or "")
        if result.outcome is StageOutcome.WARNING:
            self._console.warning(result.message)
        else:
            self._console.info(result.message)
        self._state.record(stage, result.outcome, result.message)
        return result

    def register_github_key(self) -> None:
        result = self._register(self._github, self._state.github_token, "GitHub")
        self._state.github_registered = bool(result and result.registered)

    def register_gitlab_key(self) -> None:
        self._register(
            self._gitlab,
            self._state.gitlab_token,
            f"GitLab ({self._config.gitlab_host})",
        )

    # Remote smoke tests

    def smoke_test(self) -> None:
        """Try an authenticated git handshake from the remote machine to both providers."""

        for provider, host in (("GitHub", GITHUB_GIT_HOST), ("GitLab", self._config.gitlab_host)):
            self._console.info(f"Waiting for {provider} to finish processing the new key...")
            self._sleep(KEY_PROPAGATION_DELAY)
            self._console.info(
                f"Running remote SSH smoke test for {provider} "
                "(this may return nonzero but is informative)..."
            )
            self._runner.run(remote.git_handshake(host), capture=False)
        self._state.record("smoke-test", StageOutcome.SUCCESS, "handshake output shown above")

    # Dotfiles

    def _ask_for_dotfiles_url(self) -> str | None:
        alias = self._state.target.alias
        if not self._prompter.confirm(f"Would you like to set up your dotfiles on {alias}?"):
            return None
        while True:
            answer = self._prompter.text(
                "Enter your dotfiles repository SSH URL (git@host:user/repo.git)"
            ).strip()
            if not answer:
                self._console.info("No URL provided, skipping dotfiles setup.")
                return None
            if is_valid_dotfiles_uri(answer):
                return answer
            self._console.error("Invalid SSH URL format. Examples:")
            for example in DOTFILES_URI_EXAMPLES:
                self._console.error(f"  {example}")
            self._console.info("Press Enter to skip or try again.")

    def setup_dotfiles(self) -> None:
        """Clone and apply the dotfiles repository once GitHub accepted the key."""

        if not self._state.github_registered:
            message = "Skipping dotfiles setup (GitHub key registration did not succeed)."
            self._console.info(message)
            self._state.record("dotfiles", StageOutcome.SKIPPED, message)
            return
        self._console.info("Attempting dotfiles setup (GitHub key registration succeeded).")

        if not self._state.dotfiles_url:
            self._state.dotfiles_url = self._ask_for_dotfiles_url()
        url = self._state.dotfiles_url
        if not url:
            self._state.record("dotfiles", StageOutcome.SKIPPED, "no dotfiles repository chosen")
            return

        alias = self._state.target.alias
        self._console.info(f"Installing dotfiles from {url} on {alias}...")
        completed = self._runner.run(remote.install_dotfiles(url), capture=False)
        if completed.returncode == 0:
            message = f"Dotfiles installed successfully on {alias}."
            self._console.info(message)
            self._state.record("dotfiles", StageOutcome.SUCCESS, message)
        else:
            message = "Dotfiles installation encountered issues. Check the output above."
            self._console.warning(message)
            self._state.record("dotfiles", StageOutcome.WARNING, message)

    # Runtime versions

    def _ask_for_versions_url(self) -> str | None:
        alias = self._state.target.alias
        if not self._prompter.confirm(f"Would you like to install R and Python versions on {alias}?"):
            self._console.info("Skipping R and Python installation.")
            return None
        index_url = self._config.versions_index_url
        self._console.info("Opening browser to configuration files index...")
        self._console.info(index_url)
        self._console.info(
            "Browse to find your old instance configuration and copy the 'All Programs' JSON URL"
        )
        self._opener(index_url)
        answer = self._prompter.text(
            "Paste the 'All Programs' JSON URL for your instance (or press Enter to skip)"
        ).strip()
        if not answer:
            self._console.info("No JSON URL provided, skipping R/Python installation.")
            return None
        return answer

    def install_runtime_versions(self) -> None:
        if not self._state.versions_url:
            self._state.versions_url = self._ask_for_versions_url()
        url = self._state.versions_url
        if not url:
            self._state.record("runtime-versions", StageOutcome.SKIPPED, "no manifest chosen")
            return

        manifest = fetch_manifest(url, self._http)
        for runtime in (R, PYTHON):
            self.install_runtime(runtime, manifest, url)

    def install_runtime(self, runtime: Runtime, manifest: dict[str, Any] | None, url: str) -> None:
        """Install every manifest version of ``runtime`` that the remote host lacks."""

        stage = f"{runtime.name.lower()}-versions"
        self._console.info(f"Installing {runtime.name} versions from {url}...")
        versions = extract_versions(manifest, runtime.manifest_key)
        if not versions:
            message = f"No {runtime.name} versions found in JSON or failed to fetch JSON."
            self._console.warning(message)
            self._state.record(stage, StageOutcome.WARNING, message)
            return

        probe = self._runner.run(remote.probe_tool(runtime.tool))
        if probe.returncode != 0:
            if probe.returncode == _SSH_CONNECTION_FAILURE:
                message = f"Could not reach the remote host to install {runtime.name}."
            else:
                message = (
                    f"{runtime.tool} command not found on remote system. "
                    f"Skipping {runtime.name} installation."
                )
            self._console.warning(message)
            self._state.record(stage, StageOutcome.WARNING, message)
            return

        listing = self._runner.run(remote.list_installed(runtime))
        installed = parse_installed(listing.stdout or "") if listing.returncode == 0 else set()
        pending = pending_versions(versions, installed)
        self._console.info(
            f"Installing {runtime.name} versions with {runtime.tool} "
            f"({len(pending)} of {len(versions)} not yet installed)..."
        )

        failed: list[str] = []
        for version in versions:
            if version in installed:
                self._console.info(f"{runtime.name} {version} already installed, skipping...")
                continue
            self._console.info(f"Installing {runtime.name} {version}...")
            completed = self._runner.run(remote.install_version(runtime, version), capture=False)
            if completed.returncode != 0:
                self._console.warning(f"Failed to install {runtime.name} {version}")
                failed.append(version)
                continue
            installed.add(version)

        if failed:
            message = f"{runtime.name} installation failed for: {', '.join(failed)}"
            self._state.record(stage, StageOutcome.WARNING, message)
            return
        message = f"{runtime.name} versions installation completed."
        self._console.info(message)
        self._state.record(stage, StageOutcome.SUCCESS, message)
