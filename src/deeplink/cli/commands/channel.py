"""Channel inspection and one-shot send commands."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import click

from deeplink.errors import DeepLinkError
from deeplink.ipc.channel import Channel

from ._params import scheme_argument

if TYPE_CHECKING:
    from deeplink.config import DeepLinkSettings


@click.command()
@click.argument("scheme", callback=scheme_argument)
@click.pass_obj
def status(settings: DeepLinkSettings, scheme: str) -> None:
    """Show whether an instance is serving SCHEME links."""
    try:
        channel = Channel.for_scheme(scheme, settings)
        occupied = channel.probe()
    except DeepLinkError as exc:
        raise click.ClickException(str(exc)) from exc

    if occupied:
        click.secho(f"An instance is handling {scheme}:// links.", fg="green", bold=True)
    else:
        click.secho(f"No instance is handling {scheme}:// links.", fg="yellow")
    click.echo(f"  Channel:   {channel.name}")
    click.echo(f"  Transport: {channel.transport_type}")
    click.echo(f"  Address:   {channel.address}")
    if not occupied:
        sys.exit(1)


@click.command()
@click.argument("scheme", callback=scheme_argument)
@click.argument("message")
@click.pass_obj
def send(settings: DeepLinkSettings, scheme: str, message: str) -> None:
    """Send MESSAGE to the instance handling SCHEME links."""
    try:
        delivered = Channel.for_scheme(scheme, settings).send(message)
    except DeepLinkError as exc:
        raise click.ClickException(str(exc)) from exc
    if not delivered:
        raise click.ClickException(f"No instance is handling {scheme}:// links")
    click.echo("Sent.")
