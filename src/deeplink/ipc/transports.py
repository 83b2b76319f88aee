"""Blocking local transports that back a deep-link channel.

Provides Unix socket transport on POSIX and TCP loopback fallback on Windows.
``DefaultTransport`` is automatically set to the best choice for the current platform.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import socket
import sys
from typing import TYPE_CHECKING, Any, Protocol

from deeplink.atomic import atomic_write
from deeplink.errors import IpcError
from deeplink.ipc.naming import endpoint_path_for, socket_path_for
from deeplink.limits import PROBE_TIMEOUT_SECONDS
from deeplink.process_liveness import pid_exists

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_LISTEN_BACKLOG = 16


class Transport(Protocol):
    """Operations a channel needs from the underlying endpoint mechanism."""

    transport_type: str

    @property
    def address(self) -> str: ...

    def connect(self, timeout: float) -> socket.socket: ...

    def probe(self, timeout: float) -> bool: ...

    def bind(self) -> socket.socket: ...

    def cleanup(self, listener: socket.socket) -> None: ...


def probe_connect(transport: Transport, timeout: float) -> bool:
    """Collapse a bounded connect attempt into an "occupied" boolean.

    Only an affirmative report of absence (no such endpoint, connection
    refused) yields ``False``. A timeout or a saturated backlog means a
    listener exists but is busy, so it counts as occupied.

    Raises:
        IpcError: For any other mechanism failure (e.g. permission denied).
    """
    try:
        with transport.connect(timeout):
            return True
    except (FileNotFoundError, ConnectionRefusedError):
        return False
    except (TimeoutError, BlockingIOError):
        logger.debug("Channel %s is busy; treating as occupied", transport.address)
        return True
    except OSError as exc:
        msg = f"Failed to probe channel {transport.address}: {exc}"
        raise IpcError(msg, address=transport.address) from exc


# ---------------------------------------------------------------------------
# Unix socket transport
# ---------------------------------------------------------------------------


class UnixSocketTransport:
    """Channel transport over a Unix domain socket file.

    Only available on macOS and Linux.  On Windows this class raises
    ``NotImplementedError`` at construction time.
    """

    transport_type = "socket"

    def __init__(self, path: str | Path) -> None:
        if not hasattr(socket, "AF_UNIX"):
            msg = "Unix sockets are not supported on this platform"
            raise NotImplementedError(msg)
        self._path = str(path)

    @property
    def address(self) -> str:
        return self._path

    def connect(self, timeout: float) -> socket.socket:
        """Open a client connection to the socket file."""
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(timeout)
            sock.connect(self._path)
        except BaseException:
            sock.close()
            raise
        return sock

    def probe(self, timeout: float) -> bool:
        return probe_connect(self, timeout)

    def bind(self) -> socket.socket:
        """Bind a listening socket at the configured path.

        A leftover socket file is removed only when a probe confirms nobody
        is listening on it.
        """
        if os.path.exists(self._path):
            if self.probe(PROBE_TIMEOUT_SECONDS):
                msg = f"Channel {self._path} is already being served"
                raise IpcError(msg, address=self._path)
            logger.info("Removing stale channel socket %s", self._path)
            with contextlib.suppress(FileNotFoundError):
                os.unlink(self._path)

        parent = os.path.dirname(self._path)
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            if parent:
                os.makedirs(parent, exist_ok=True)
            sock.bind(self._path)
            os.chmod(self._path, 0o600)
            sock.listen(_LISTEN_BACKLOG)
        except OSError as exc:
            sock.close()
            msg = f"Failed to bind channel {self._path}: {exc}"
            raise IpcError(msg, address=self._path) from exc

        logger.info("Unix socket channel listening on %s", self._path)
        return sock

    def cleanup(self, listener: socket.socket) -> None:
        listener.close()
        with contextlib.suppress(FileNotFoundError):
            os.unlink(self._path)
        logger.info("Unix socket channel stopped")


# ---------------------------------------------------------------------------
# TCP loopback transport
# ---------------------------------------------------------------------------

_LOCALHOST = "127.0.0.1"


class TCPLoopbackTransport:
    """Channel transport over a TCP socket bound to localhost.

    Used on platforms without Unix sockets. The OS picks a free port, which is
    published together with the owner PID in an endpoint file so clients can
    find it by channel name. An endpoint file whose owner process is gone is
    treated as absent.
    """

    transport_type = "tcp"

    def __init__(self, endpoint_path: str | Path, host: str | None = None) -> None:
        self._endpoint_path = str(endpoint_path)
        self._host = host or _LOCALHOST
        self._bound_port: int | None = None

    @property
    def address(self) -> str:
        return self._endpoint_path

    def _read_endpoint(self) -> dict[str, Any] | None:
        try:
            with open(self._endpoint_path, encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, ValueError):
            logger.warning("Unreadable endpoint file at %s", self._endpoint_path)
            return None
        if not isinstance(data, dict):
            return None
        port = data.get("port")
        if not isinstance(port, int) or port <= 0:
            logger.warning("Malformed endpoint file at %s", self._endpoint_path)
            return None
        pid = data.get("pid")
        if isinstance(pid, int) and not pid_exists(pid):
            logger.info("Channel owner (PID %d) is no longer running; stale endpoint", pid)
            return None
        return data

    def connect(self, timeout: float) -> socket.socket:
        """Open a client connection to the port advertised in the endpoint file."""
        endpoint = self._read_endpoint()
        if endpoint is None:
            raise FileNotFoundError(self._endpoint_path)
        return socket.create_connection((self._host, endpoint["port"]), timeout=timeout)

    def probe(self, timeout: float) -> bool:
        return probe_connect(self, timeout)

    def bind(self) -> socket.socket:
        """Bind a TCP listener on localhost and publish its endpoint file."""
        if self.probe(PROBE_TIMEOUT_SECONDS):
            msg = f"Channel {self._endpoint_path} is already being served"
            raise IpcError(msg, address=self._endpoint_path)

        try:
            sock = socket.create_server((self._host, 0), backlog=_LISTEN_BACKLOG)
        except OSError as exc:
            msg = f"Failed to bind channel {self._endpoint_path}: {exc}"
            raise IpcError(msg, address=self._endpoint_path) from exc

        self._bound_port = sock.getsockname()[1]
        try:
            atomic_write(
                self._endpoint_path,
                json.dumps({"port": self._bound_port, "pid": os.getpid()}),
            )
        except OSError as exc:
            sock.close()
            msg = f"Failed to publish channel endpoint {self._endpoint_path}: {exc}"
            raise IpcError(msg, address=self._endpoint_path) from exc

        logger.info(
            "TCP loopback channel listening on %s:%d (%s)",
            self._host,
            self._bound_port,
            self._endpoint_path,
        )
        return sock

    def cleanup(self, listener: socket.socket) -> None:
        listener.close()
        # Leave a successor's endpoint file alone.
        try:
            with open(self._endpoint_path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError, ValueError):
            data = None
        if isinstance(data, dict) and data.get("port") == self._bound_port:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(self._endpoint_path)
        self._bound_port = None
        logger.info("TCP loopback channel stopped")


# ---------------------------------------------------------------------------
# Default transport selection
# ---------------------------------------------------------------------------

if sys.platform == "win32":
    DefaultTransport: type[UnixSocketTransport] | type[TCPLoopbackTransport] = TCPLoopbackTransport
else:
    DefaultTransport = UnixSocketTransport


def transport_for(name: str, runtime_dir: Path, preference: str = "auto") -> Transport:
    """Instantiate the transport for channel *name* from a preference string."""
    if preference == "auto":
        preference = DefaultTransport.transport_type
    if preference == "socket":
        return UnixSocketTransport(socket_path_for(name, runtime_dir))
    if preference == "tcp":
        return TCPLoopbackTransport(endpoint_path_for(name, runtime_dir))
    msg = f"Unknown transport preference: {preference!r}"
    raise ValueError(msg)


__all__ = [
    "DefaultTransport",
    "TCPLoopbackTransport",
    "Transport",
    "UnixSocketTransport",
    "probe_connect",
    "transport_for",
]
