"""Entry point for ``python -m deeplink``."""

from __future__ import annotations

from deeplink.cli import cli

if __name__ == "__main__":
    cli()
