"""Scheme validation and channel-name derivation."""

from __future__ import annotations

import hashlib
import re
import tempfile
from pathlib import Path

from deeplink.limits import MAX_SOCKET_PATH_LENGTH

CHANNEL_PREFIX = "deeplink"

# RFC 3986: scheme = ALPHA *( ALPHA / DIGIT / "+" / "-" / "." )
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*$")


def normalize_scheme(scheme: str) -> str:
    """Validate *scheme* and return its canonical lower-case form.

    Accepts an optional trailing ``://`` or ``:`` so ``"myapp://"`` and
    ``"myapp"`` name the same scheme.

    Raises:
        ValueError: If the scheme is empty or contains invalid characters.
    """
    candidate = scheme.strip().lower()
    for suffix in ("://", ":"):
        if candidate.endswith(suffix):
            candidate = candidate[: -len(suffix)]
            break
    if not _SCHEME_RE.match(candidate):
        msg = f"Invalid URL scheme: {scheme!r}"
        raise ValueError(msg)
    return candidate


def scheme_prefix(scheme: str) -> str:
    """Return the ``<scheme>://`` prefix that marks a deep-link argument."""
    return f"{normalize_scheme(scheme)}://"


def is_deep_link(value: str, scheme: str) -> bool:
    """Return whether *value* is a URL of *scheme* (scheme compared case-insensitively)."""
    prefix = scheme_prefix(scheme)
    return value[: len(prefix)].lower() == prefix


def channel_name(scheme: str) -> str:
    """Derive the host-unique channel name for *scheme*.

    The name depends only on the scheme, so unrelated processes rendezvous on
    it without prior coordination.
    """
    return f"{CHANNEL_PREFIX}-{normalize_scheme(scheme)}"


def socket_path_for(name: str, runtime_dir: Path) -> Path:
    """Return the Unix socket path for channel *name* inside *runtime_dir*.

    ``AF_UNIX`` paths are length-limited; deep runtime directories fall back
    to a short hashed name in the system temp directory.
    """
    path = runtime_dir / f"{name}.sock"
    if len(str(path)) <= MAX_SOCKET_PATH_LENGTH:
        return path
    digest = hashlib.sha256(str(path).encode("utf-8")).hexdigest()[:16]
    return Path(tempfile.gettempdir()) / f"{CHANNEL_PREFIX}-{digest}.sock"


def endpoint_path_for(name: str, runtime_dir: Path) -> Path:
    """Return the endpoint descriptor path used by the TCP loopback transport."""
    return runtime_dir / f"{name}.endpoint.json"


def lock_path_for(name: str, runtime_dir: Path) -> Path:
    """Return the instance lock path for channel *name*."""
    return runtime_dir / f"{name}.lock"


__all__ = [
    "CHANNEL_PREFIX",
    "channel_name",
    "endpoint_path_for",
    "is_deep_link",
    "lock_path_for",
    "normalize_scheme",
    "scheme_prefix",
    "socket_path_for",
]
