"""Command line interface for the plugin manager."""

import asyncio
import inspect
import json
import logging
import signal
import sys
from dataclasses import asdict
from pathlib import Path

import click

from . import __version__
from .cancellation import CancelToken
from .config import ConfigError, ManagerConfig
from .events import EventKind, ProgressEvent
from .manager import PluginManager


class _ProgressPrinter:
    """Echoes progress events and remembers whether the operation failed."""

    def __init__(self, quiet: bool = False):
        self.quiet = quiet
        self.failed = False

    def __call__(self, event: ProgressEvent) -> None:
        if event.kind is EventKind.ERROR:
            self.failed = True
            click.secho(f"Error: {event.message}", fg="red", err=True)
        elif event.kind is EventKind.SUCCESS:
            if not self.quiet:
                click.secho(event.message, fg="green")
        elif not self.quiet:
            click.echo(f"  {event.message}")


def _run(config: ManagerConfig, operation, cancel_token=None):
    async def execute():
        if cancel_token is not None and sys.platform != "win32":
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, cancel_token.cancel)

        async with PluginManager(config) as manager:
            result = operation(manager)
            if inspect.isawaitable(result):
                result = await result
            return result

    return asyncio.run(execute())


def _finish(ctx: click.Context, printer: _ProgressPrinter) -> None:
    if printer.failed:
        ctx.exit(1)


folder_option = click.option(
    "--folder",
    "-f",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Plugins directory (defaults to the configured one)",
)
host_version_option = click.option(
    "--host-version",
    default=None,
    help="Host version to check plugin compatibility against",
)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Path, verbose: bool):
    """Install, update, list and uninstall registry-hosted plugins."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj = ManagerConfig.load(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument("source")
@folder_option
@host_version_option
@click.option("--quiet", "-q", is_flag=True, help="Only report errors")
@click.pass_context
def install(ctx: click.Context, source: str, folder: Path, host_version: str, quiet: bool):
    """Install a plugin from its registry package URL."""
    printer = _ProgressPrinter(quiet)
    token = CancelToken()
    _run(
        ctx.obj,
        lambda manager: manager.install(source, folder, host_version, printer, token),
        cancel_token=token,
    )
    _finish(ctx, printer)


@cli.command()
@click.argument("name")
@folder_option
@host_version_option
@click.option("--quiet", "-q", is_flag=True, help="Only report errors")
@click.pass_context
def update(ctx: click.Context, name: str, folder: Path, host_version: str, quiet: bool):
    """Update an installed plugin to the latest registry version."""
    printer = _ProgressPrinter(quiet)
    token = CancelToken()
    _run(
        ctx.obj,
        lambda manager: manager.update(name, folder, host_version, printer, token),
        cancel_token=token,
    )
    _finish(ctx, printer)


@cli.command()
@click.argument("name")
@folder_option
@click.pass_context
def uninstall(ctx: click.Context, name: str, folder: Path):
    """Uninstall a plugin."""
    printer = _ProgressPrinter()
    _run(ctx.obj, lambda manager: manager.uninstall(name, folder, printer))
    _finish(ctx, printer)


@cli.command(name="list")
@folder_option
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def list_plugins(ctx: click.Context, folder: Path, as_json: bool):
    """List installed plugins."""
    printer = _ProgressPrinter(quiet=True)
    plugins = _run(ctx.obj, lambda manager: manager.list(folder, printer))
    _finish(ctx, printer)

    if as_json:
        click.echo(json.dumps([p.to_dict() for p in plugins], indent=2))
        return

    if not plugins:
        click.echo("No plugins installed")
        return

    for plugin in plugins:
        click.echo(f"{plugin.name}\t{plugin.version or '-'}\t{plugin.folder_name}")


@cli.command()
@click.argument("source")
@click.pass_context
def info(ctx: click.Context, source: str):
    """Show registry metadata for a package URL."""
    printer = _ProgressPrinter(quiet=True)
    metadata = _run(ctx.obj, lambda manager: manager.resolve_metadata(source, printer))
    _finish(ctx, printer)
    click.echo(json.dumps(asdict(metadata), indent=2))


def main() -> None:
    cli(prog_name="archive-plugin-manager")


if __name__ == "__main__":
    main()
