"""Configuration loader for deeplink."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Literal, TypeAlias

from pydantic import BaseModel, Field

from deeplink.limits import (
    FORWARD_WAIT_SECONDS,
    MAX_MESSAGE_BYTES,
    PROBE_TIMEOUT_SECONDS,
    SEND_TIMEOUT_SECONDS,
)
from deeplink.paths import get_config_path, get_runtime_dir

logger = logging.getLogger(__name__)

TransportPreference: TypeAlias = Literal["auto", "socket", "tcp"]


class DeepLinkSettings(BaseModel):
    """Tunables shared by the channel and the coordinator."""

    transport: TransportPreference = Field(
        default="auto",
        description="Channel transport: auto (platform default), socket, or tcp",
    )
    runtime_dir: Path | None = Field(
        default=None,
        description="Directory for sockets, endpoint files and locks (None = per-user default)",
    )
    max_message_bytes: int = Field(
        default=MAX_MESSAGE_BYTES,
        ge=1,
        le=1024 * 1024,
        description="Largest payload accepted on the channel",
    )
    probe_timeout_seconds: float = Field(default=PROBE_TIMEOUT_SECONDS, gt=0)
    send_timeout_seconds: float = Field(default=SEND_TIMEOUT_SECONDS, gt=0)
    forward_wait_seconds: float = Field(
        default=FORWARD_WAIT_SECONDS,
        ge=0,
        description="How long a launch that lost the instance lock waits for the channel",
    )

    def resolved_runtime_dir(self) -> Path:
        """Return the configured runtime directory or the per-user default."""
        if self.runtime_dir is not None:
            return self.runtime_dir.expanduser().resolve()
        return get_runtime_dir()


def load_settings(path: Path | None = None) -> DeepLinkSettings:
    """Load settings from the ``[deeplink]`` table of a TOML file.

    A missing file yields the defaults. Malformed TOML and invalid values
    propagate (``tomllib.TOMLDecodeError`` / ``pydantic.ValidationError``).
    """
    config_path = path if path is not None else get_config_path()
    if not config_path.exists():
        logger.debug("No config file at %s; using defaults", config_path)
        return DeepLinkSettings()

    with config_path.open("rb") as handle:
        data = tomllib.load(handle)

    section = data.get("deeplink", {})
    if not isinstance(section, dict):
        msg = f"[deeplink] in {config_path} must be a table"
        raise ValueError(msg)
    return DeepLinkSettings.model_validate(section)


__all__ = ["DeepLinkSettings", "TransportPreference", "load_settings"]
