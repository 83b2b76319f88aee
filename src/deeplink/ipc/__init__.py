"""Channel naming, transports, and the point-to-point channel used for deep-link handoff."""

from __future__ import annotations

from deeplink.ipc.channel import Channel, ServerHandle
from deeplink.ipc.naming import channel_name, normalize_scheme
from deeplink.ipc.transports import DefaultTransport, TCPLoopbackTransport, UnixSocketTransport

__all__ = [
    "Channel",
    "DefaultTransport",
    "ServerHandle",
    "TCPLoopbackTransport",
    "UnixSocketTransport",
    "channel_name",
    "normalize_scheme",
]
