"""Settings-related CLI commands."""

from __future__ import annotations

import json

import typer

from vmonboard.config import ConfigStore

config_app = typer.Typer(
    help="Inspect and adjust vmonboard settings",
    context_settings={"help_option_names": ["-h", "--help"]},
)


@config_app.callback(invoke_without_command=True)
def config_root(ctx: typer.Context) -> None:
    """Display contextual help when no subcommand is provided."""

    if ctx.invoked_subcommand or ctx.resilient_parsing:
        return
    typer.echo(ctx.get_help())
    raise typer.Exit()


@config_app.command("show")
def show_config() -> None:
    """Display the effective settings, defaults included."""

    store = ConfigStore()
    config = store.load()
    typer.echo(json.dumps(config.to_payload(), indent=2, sort_keys=True))


@config_app.command("path")
def show_config_path() -> None:
    """Print the location of the settings file."""

    typer.echo(str(ConfigStore().path))


@config_app.command("set")
def set_config_value(
    key: str = typer.Argument(..., metavar="KEY", help="Name of the setting to change."),
    value: str = typer.Argument(..., metavar="VALUE", help="New value for the setting."),
) -> None:
    """Persist a single setting in the settings file."""

    store = ConfigStore()
    config = store.load()
    try:
        config.set_value(key, value)
    except KeyError as exc:
        typer.echo(exc.args[0], err=True)
        raise typer.Exit(2) from exc
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(2) from exc
    store.save(config)
    typer.echo(f"Updated {key}.")
