"""Run as the primary deep-link handler, or forward to the running one."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from deeplink.coordinator import DeepLink
from deeplink.errors import DeepLinkError

from ._params import scheme_argument

if TYPE_CHECKING:
    from deeplink.config import DeepLinkSettings


def _print_link(url: str) -> None:
    click.echo(f"received deep link: {url}")


@click.command()
@click.argument("scheme", callback=scheme_argument)
@click.argument("args", nargs=-1)
@click.option(
    "--register",
    "register_first",
    is_flag=True,
    help="Register SCHEME to launch this command before starting.",
)
@click.pass_obj
def run(
    settings: DeepLinkSettings, scheme: str, args: tuple[str, ...], register_first: bool
) -> None:
    """Handle SCHEME links, keeping a single running instance.

    The last of ARGS is treated as the launch's deep link. When another
    instance is already running it receives the link and this one exits.
    """
    try:
        with DeepLink(scheme, settings=settings) as link:
            if register_first:
                link.register_scheme(arguments=["run", scheme])
            link.set_on_message(_print_link)

            if not link.run_or_forward(list(args)):
                if args:
                    click.echo("Forwarded to the running instance.")
                else:
                    click.echo("Another instance is already running.")
                return

            click.secho(
                f"Listening for {scheme}:// links. Press Ctrl+C to exit.",
                fg="green",
                bold=True,
            )
            try:
                link.wait()
            except KeyboardInterrupt:
                click.echo("Shutting down.")
    except DeepLinkError as exc:
        raise click.ClickException(str(exc)) from exc
