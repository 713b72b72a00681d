from __future__ import annotations

from enum import IntEnum
from functools import partial
from pathlib import Path

import anyio
import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .catalog import CatalogError
from .config import ConfigError, StartupTimeout
from .logging import setup_logging
from .runtime import connect_registry, load_catalog, run_bot
from .settings import ConfigResolver, ExecConfig
from .startup import start
from .sync import RegistrationSynchronizer, SyncPlan, SyncReport, SyncSetupError


class ExitCode(IntEnum):
    OK = 0
    CONFIG = 2
    STARTUP_TIMEOUT = 3
    CATALOG = 4
    SYNC_SETUP = 5


def exit_code_for(exc: BaseException) -> ExitCode:
    if isinstance(exc, StartupTimeout):
        return ExitCode.STARTUP_TIMEOUT
    if isinstance(exc, CatalogError):
        return ExitCode.CATALOG
    if isinstance(exc, SyncSetupError):
        return ExitCode.SYNC_SETUP
    if isinstance(exc, ConfigError):
        return ExitCode.CONFIG
    raise exc


def _root_cause(exc: BaseException) -> BaseException:
    while isinstance(exc, BaseExceptionGroup) and len(exc.exceptions) == 1:
        exc = exc.exceptions[0]
    return exc


def _fail(exc: BaseException) -> typer.Exit:
    code = exit_code_for(exc)
    typer.echo(f"error: {exc}", err=True)
    return typer.Exit(code=int(code))


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="bailiff: Discord moderation bot.",
)

_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="Execution config file (default: ./bailiff.toml).",
    dir_okay=False,
)
_GUILD_OPTION = typer.Option(
    None,
    "--guild-id",
    help="Register commands in this guild only instead of globally.",
)


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """bailiff CLI."""


@app.command()
def run(
    config: Path | None = _CONFIG_OPTION,
    guild_id: int | None = _GUILD_OPTION,
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log Discord requests and dispatch details.",
    ),
) -> None:
    """Start the bot."""
    setup_logging(debug=debug)
    try:
        anyio.run(partial(run_bot, config_path=config, guild_id=guild_id))
    except KeyboardInterrupt:
        raise typer.Exit(code=int(ExitCode.OK)) from None
    except Exception as exc:
        cause = _root_cause(exc)
        if isinstance(cause, ConfigError):
            raise _fail(cause) from None
        raise


@app.command("commands")
def list_commands() -> None:
    """List the command catalog by plugin."""
    setup_logging()
    try:
        catalog = load_catalog()
    except CatalogError as exc:
        raise _fail(exc) from None

    table = Table(title=f"{len(catalog)} commands")
    table.add_column("plugin")
    table.add_column("command", no_wrap=True)
    table.add_column("aliases", no_wrap=True)
    table.add_column("cooldown", justify="right")
    table.add_column("description")
    for descriptor in catalog:
        table.add_row(
            descriptor.plugin.value,
            f"/{descriptor.name}",
            ", ".join(descriptor.aliases),
            f"{descriptor.cooldown:g}s" if descriptor.cooldown else "-",
            descriptor.description,
        )
    Console().print(table)
    if catalog.empty_plugins:
        names = ", ".join(sorted(plugin.value for plugin in catalog.empty_plugins))
        typer.echo(f"plugins without commands: {names}")


def _print_plan(plan: SyncPlan) -> None:
    if not len(plan):
        typer.echo(f"in sync ({len(plan.unchanged)} commands unchanged)")
        return
    for op in plan.operations:
        typer.echo(f"{op.kind:<7} /{op.name}")
    typer.echo(f"{len(plan)} operations, {len(plan.unchanged)} unchanged")


def _print_report(report: SyncReport) -> None:
    typer.echo(
        f"created {len(report.created)}, updated {len(report.updated)}, "
        f"deleted {len(report.deleted)}, unchanged {len(report.unchanged)}"
    )
    for failure in report.failures:
        typer.echo(
            f"failed  /{failure.name} ({failure.kind}, {failure.attempts} attempts): "
            f"{failure.error}",
            err=True,
        )


async def _sync(config_path: Path | None, guild_id: int | None, apply: bool) -> None:
    async def _connect(config: ExecConfig):
        return await connect_registry(config, guild_id=guild_id)

    _, registry = await start(ConfigResolver(config_path), _connect)
    async with registry:
        catalog = load_catalog()
        synchronizer = RegistrationSynchronizer(registry)
        if apply:
            _print_report(await synchronizer.synchronize(catalog))
        else:
            _print_plan(await synchronizer.plan(catalog))


@app.command()
def sync(
    config: Path | None = _CONFIG_OPTION,
    guild_id: int | None = _GUILD_OPTION,
    apply: bool = typer.Option(
        False,
        "--apply/--dry-run",
        help="Apply the changes instead of only printing them.",
    ),
) -> None:
    """Compare the catalog with Discord's registered commands."""
    setup_logging()
    try:
        anyio.run(_sync, config, guild_id, apply)
    except ConfigError as exc:
        raise _fail(exc) from None


def main() -> None:
    app()


if __name__ == "__main__":
    main()
