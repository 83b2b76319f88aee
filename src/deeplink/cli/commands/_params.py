"""Shared click parameter helpers."""

from __future__ import annotations

import click

from deeplink.ipc.naming import normalize_scheme


def scheme_argument(ctx: click.Context, param: click.Parameter, value: str) -> str:
    """Validate and normalize a SCHEME argument."""
    del ctx, param
    try:
        return normalize_scheme(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
