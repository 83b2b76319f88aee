"""Root CLI command registration."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import click
from pydantic import ValidationError

from deeplink.config import load_settings
from deeplink.log import setup_logging

from .channel import send, status
from .run import run
from .scheme import register, unregister

try:
    __version__ = version("deeplink")
except PackageNotFoundError:
    __version__ = "dev"


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, is_eager=True, help="Show version and exit")
@click.option("-v", "--verbose", is_flag=True, help="Log channel activity to stderr")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to a config.toml with a [deeplink] table",
)
@click.pass_context
def cli(ctx: click.Context, version: bool, verbose: bool, config_path: Path | None) -> None:
    """Single-instance deep-link handling for desktop applications."""
    if version:
        click.echo(f"deeplink {__version__}")
        ctx.exit(0)

    setup_logging(verbose=verbose)
    try:
        ctx.obj = load_settings(config_path)
    except (OSError, ValueError, ValidationError) as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(run)
cli.add_command(send)
cli.add_command(status)
cli.add_command(register)
cli.add_command(unregister)
