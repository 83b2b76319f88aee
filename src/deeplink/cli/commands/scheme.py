"""URL scheme registration commands."""

from __future__ import annotations

from pathlib import Path

import click

from deeplink.errors import RegistrationError
from deeplink.registration import default_executable, register_scheme, unregister_scheme

from ._params import scheme_argument


@click.command()
@click.argument("scheme", callback=scheme_argument)
@click.option(
    "--executable",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Program to launch for SCHEME links (default: `deeplink run SCHEME`).",
)
def register(scheme: str, executable: Path | None) -> None:
    """Register SCHEME links to open with this machine's handler."""
    if executable is None:
        command = default_executable()
        target: str | Path = command[0]
        arguments = [*command[1:], "run", scheme]
    else:
        target = executable
        arguments = []

    try:
        register_scheme(scheme, target, arguments=arguments)
    except RegistrationError as exc:
        raise click.ClickException(str(exc)) from exc
    click.secho(f"Registered {scheme}:// links.", fg="green", bold=True)


@click.command()
@click.argument("scheme", callback=scheme_argument)
def unregister(scheme: str) -> None:
    """Remove the SCHEME link registration."""
    try:
        unregister_scheme(scheme)
    except RegistrationError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Unregistered {scheme}:// links.")
