"""Command-line interface for onboarding a new virtual machine."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping, Sequence

import click
import httpx
import typer

from vmonboard import __version__
from vmonboard.cli.config import config_app
from vmonboard.cli.console import TyperConsole, TyperPrompter, echo_summary
from vmonboard.config import AppConfig, ConfigStore
from vmonboard.core.models import RunState, TargetHost
from vmonboard.core.remote import SSHRemote
from vmonboard.core.ssh_config import SSHConfigManager
from vmonboard.core.validation import (
    ValidationError,
    normalize_alias,
    validate_dotfiles_uri,
    validate_ipv4,
)
from vmonboard.core.workflow import Onboarding, OnboardingError, assert_tools
from vmonboard.paths import ssh_dir

REMOTE_USER_ENV = "VMONBOARD_REMOTE_USER"

app = typer.Typer(
    help=(
        "Add an SSH config alias for a new instance, ensure it has an id_rsa keypair "
        "and register its public key with GitHub/GitLab. Optionally set up dotfiles "
        "with dotbot and install R (rig) and Python (pyenv) versions from a JSON manifest."
    ),
    add_completion=False,
)

_SUBCOMMANDS: dict[str, typer.Typer] = {"config": config_app}


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def resolve_remote_user(
    provided: str | None,
    environ: Mapping[str, str],
    config: AppConfig,
) -> str:
    """Pick the remote user from the flag, the environment, then the settings file."""

    for candidate in (provided, environ.get(REMOTE_USER_ENV)):
        if candidate and candidate.strip():
            return candidate.strip()
    return config.default_remote_user


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def onboard(
    ip: str = typer.Argument(
        ...,
        metavar="NEW-IP",
        help="IPv4 address of the new instance (e.g., 172.27.21.59).",
    ),
    alias: str = typer.Argument(
        ...,
        metavar="NEW-HOST-ALIAS",
        help="SSH alias for the instance (e.g., iv3-dev-4); underscores become hyphens.",
    ),
    dotfiles: str | None = typer.Option(
        None,
        "--dotfiles",
        metavar="URI",
        help="SSH URL of a dotfiles repository (git@host:user/repo.git).",
    ),
    remote_user: str | None = typer.Option(
        None,
        "--remote-user",
        metavar="USER",
        help=f"SSH username on the instance (default: ${REMOTE_USER_ENV} or 'ubuntu').",
    ),
    versions_url: str | None = typer.Option(
        None,
        "--versions-url",
        metavar="URL",
        help="JSON manifest of R/Python versions to install, skipping the prompt.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the application's version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Onboard the instance at NEW-IP under the SSH alias NEW-HOST-ALIAS."""

    console = TyperConsole()
    try:
        validate_ipv4(ip)
        normalized = normalize_alias(alias)
        if dotfiles is not None:
            validate_dotfiles_uri(dotfiles)
    except ValidationError as exc:
        console.error(str(exc))
        raise typer.Exit(1) from exc

    if normalized != alias:
        console.info(f"Normalized hostname: '{alias}' -> '{normalized}'")

    config = ConfigStore().load()
    target = TargetHost(
        ip=ip,
        alias=normalized,
        remote_user=resolve_remote_user(remote_user, os.environ, config),
    )
    console.info(f"Target: {target.destination} (alias: {target.alias})")
    state = RunState(target=target, dotfiles_url=dotfiles, versions_url=versions_url)

    try:
        assert_tools()
        with httpx.Client() as client:
            workflow = Onboarding(
                state,
                config=config,
                console=console,
                prompter=TyperPrompter(),
                runner=SSHRemote(target, connect_timeout=config.connect_timeout),
                http=client,
                ssh_config=SSHConfigManager(ssh_dir(), identity_file=config.identity_file),
            )
            workflow.run()
    except OnboardingError as exc:
        console.error(str(exc))
        raise typer.Exit(1) from exc

    echo_summary(state.summary())
    console.next_steps(f"You can now SSH with: ssh {target.alias}")
    console.info("Done.")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the vmonboard CLI."""

    args = list(argv) if argv is not None else list(sys.argv[1:])
    target_app = app
    prog_name = "vmonboard"
    if args and args[0] in _SUBCOMMANDS:
        target_app = _SUBCOMMANDS[args[0]]
        prog_name = f"vmonboard {args[0]}"
        args = args[1:]

    try:
        result = target_app(args=args, prog_name=prog_name, standalone_mode=False)
    except typer.Exit as exc:  # exit path already handled by Typer
        return exc.exit_code
    except click.ClickException as exc:
        exc.show()
        return 1
    except click.exceptions.Abort:
        typer.echo("Aborted.", err=True)
        return 1
    except Exception as exc:  # last resort for unexpected errors
        typer.secho(f"ERROR: {exc}", fg=typer.colors.RED, err=True)
        return 1
    return result if isinstance(result, int) else 0


if __name__ == "__main__":  # pragma: no cover - manual execution only
    raise SystemExit(main())
