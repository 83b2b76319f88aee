"""Logging setup for the deeplink command-line tool.

The library itself only creates module loggers; applications decide where
records go. The CLI routes the ``deeplink`` logger to stderr.
"""

from __future__ import annotations

import logging
import sys

_LOGGER_NAME = "deeplink"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_logging_initialized: bool = False


def setup_logging(*, verbose: bool = False) -> None:
    """Attach a stderr handler to the ``deeplink`` logger.

    This is idempotent - calling it again only adjusts the level.
    """
    global _logging_initialized

    package_logger = logging.getLogger(_LOGGER_NAME)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if _logging_initialized:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    package_logger.addHandler(handler)

    _logging_initialized = True
