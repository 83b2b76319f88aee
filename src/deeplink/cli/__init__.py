"""Command-line interface for deeplink."""

from __future__ import annotations

from deeplink.cli.commands.root import cli

__all__ = ["cli"]
