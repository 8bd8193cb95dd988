"""Typed remote actions and the SSH runner that executes them."""

from __future__ import annotations

import shlex
import subprocess
import textwrap
from collections.abc import Sequence
from dataclasses import dataclass

from vmonboard.config import DEFAULT_CONNECT_TIMEOUT
from vmonboard.core.models import TargetHost

__all__ = [
    "PYTHON",
    "R",
    "RemoteCommand",
    "RemoteCommandError",
    "Runtime",
    "SSHRemote",
    "build_ssh_command",
    "ensure_keypair",
    "git_handshake",
    "install_dotfiles",
    "install_version",
    "list_installed",
    "probe_tool",
    "read_public_key",
]


class RemoteCommandError(RuntimeError):
    """Raised when a remote action exits with a non-zero status."""

    def __init__(self, label: str, returncode: int, stderr: str = "") -> None:
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"{label} failed with exit status {returncode}{detail}")
        self.label = label
        self.returncode = returncode
        self.stderr = stderr


@dataclass(frozen=True, slots=True)
class RemoteCommand:
    """A script run by ``bash`` on the remote host with positional arguments.

    Values such as versions or URIs travel as ``$1``, ``$2``... and are quoted
    for the remote shell, so they are never spliced into the script body.
    """

    label: str
    script: str
    args: tuple[str, ...] = ()

    def remote_argv(self) -> str:
        """Return the command string ``ssh`` hands to the remote login shell."""

        return shlex.join(["bash", "-l", "-s", "--", *self.args])


@dataclass(frozen=True, slots=True)
class Runtime:
    """A language runtime managed by a version-manager tool on the remote host."""

    name: str
    tool: str
    manifest_key: str
    list_argv: tuple[str, ...]
    install_argv: tuple[str, ...]


R = Runtime(
    name="R",
    tool="rig",
    manifest_key="r_versions",
    list_argv=("rig", "list", "--plain"),
    install_argv=("rig", "add"),
)
PYTHON = Runtime(
    name="Python",
    tool="pyenv",
    manifest_key="python_versions",
    list_argv=("pyenv", "versions", "--bare"),
    install_argv=("pyenv", "install", "-s"),
)


_ENSURE_KEYPAIR_SCRIPT = textwrap.dedent(
    """\
    set -euo pipefail
    mkdir -p "${HOME}/.ssh"
    chmod 700 "${HOME}/.ssh"
    if [[ ! -f "${HOME}/.ssh/id_rsa" || ! -f "${HOME}/.ssh/id_rsa.pub" ]]; then
      ssh-keygen -t rsa -b 4096 -N '' -f "${HOME}/.ssh/id_rsa" >/dev/null
      chmod 600 "${HOME}/.ssh/id_rsa"
      chmod 644 "${HOME}/.ssh/id_rsa.pub"
    fi
    """
)

_READ_PUBLIC_KEY_SCRIPT = 'cat "${HOME}/.ssh/id_rsa.pub"\n'

_GIT_HANDSHAKE_SCRIPT = 'ssh -T -o StrictHostKeyChecking=accept-new "git@$1"\n'

_INSTALL_DOTFILES_SCRIPT = textwrap.dedent(
    """\
    set -euo pipefail
    url="$1"
    dest="${HOME}/dotfiles"
    export GIT_SSH_COMMAND="ssh -o StrictHostKeyChecking=accept-new"

    if [[ -d "${dest}" ]]; then
      echo "Directory ~/dotfiles already exists, skipping clone."
    else
      echo "Cloning dotfiles repository..."
      if ! git clone --recursive "${url}" "${dest}"; then
        echo "ERROR: Failed to clone dotfiles repository." >&2
        exit 1
      fi
    fi

    if [[ -f "${dest}/install.conf.yaml" ]]; then
      cd "${dest}"
      if [[ -x "./dotbot/bin/dotbot" ]]; then
        echo "Running dotbot..."
        ./dotbot/bin/dotbot -c install.conf.yaml || {
          echo "WARNING: dotbot execution failed, but continuing." >&2
        }
      else
        echo "WARNING: dotbot executable not found at ./dotbot/bin/dotbot" >&2
      fi
    else
      echo "WARNING: install.conf.yaml not found in dotfiles repository" >&2
    fi

    echo "Dotfiles setup completed."
    """
)

_PROBE_TOOL_SCRIPT = 'command -v "$1" >/dev/null 2>&1\n'

_RUN_ARGS_SCRIPT = '"$@"\n'


def ensure_keypair() -> RemoteCommand:
    """Create ``~/.ssh/id_rsa`` (4096-bit RSA, no passphrase) if either half is missing."""

    return RemoteCommand(label="ensure remote keypair", script=_ENSURE_KEYPAIR_SCRIPT)


def read_public_key() -> RemoteCommand:
    return RemoteCommand(label="read remote public key", script=_READ_PUBLIC_KEY_SCRIPT)


def git_handshake(host: str) -> RemoteCommand:
    """Authenticate against ``git@host`` from the remote machine."""

    return RemoteCommand(
        label=f"git handshake with {host}",
        script=_GIT_HANDSHAKE_SCRIPT,
        args=(host,),
    )


def install_dotfiles(url: str) -> RemoteCommand:
    """Clone ``url`` into ``~/dotfiles`` once and apply it with dotbot."""

    return RemoteCommand(label="install dotfiles", script=_INSTALL_DOTFILES_SCRIPT, args=(url,))


def probe_tool(tool: str) -> RemoteCommand:
    return RemoteCommand(label=f"probe {tool}", script=_PROBE_TOOL_SCRIPT, args=(tool,))


def list_installed(runtime: Runtime) -> RemoteCommand:
    return RemoteCommand(
        label=f"list installed {runtime.name} versions",
        script=_RUN_ARGS_SCRIPT,
        args=runtime.list_argv,
    )


def install_version(runtime: Runtime, version: str) -> RemoteCommand:
    return RemoteCommand(
        label=f"install {runtime.name} {version}",
        script=_RUN_ARGS_SCRIPT,
        args=(*runtime.install_argv, version),
    )


def build_ssh_command(
    target: TargetHost,
    command: RemoteCommand,
    *,
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
) -> list[str]:
    """Construct the argv list for running ``command`` through the system ssh binary."""

    return [
        "ssh",
        "-o",
        "BatchMode=yes",
        "-o",
        f"ConnectTimeout={connect_timeout}",
        target.destination,
        command.remote_argv(),
    ]


class SSHRemote:
    """Run remote commands over a fresh, non-interactive ssh session each time."""

    def __init__(
        self,
        target: TargetHost,
        *,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self._target = target
        self._connect_timeout = connect_timeout

    @property
    def target(self) -> TargetHost:
        return self._target

    def run(
        self,
        command: RemoteCommand,
        *,
        capture: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Execute ``command``; with ``capture`` false output streams to the terminal."""

        argv: Sequence[str] = build_ssh_command(
            self._target, command, connect_timeout=self._connect_timeout
        )
        return subprocess.run(
            argv,
            input=command.script,
            capture_output=capture,
            text=True,
            check=False,
        )
