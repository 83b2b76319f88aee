"""Single-instance deep-link handling for desktop applications."""

from __future__ import annotations

from deeplink.config import DeepLinkSettings, load_settings
from deeplink.coordinator import DeepLink, ListenerState, Posture
from deeplink.errors import DeepLinkError, IpcError, MessageTooLargeError, RegistrationError
from deeplink.ipc.channel import Channel, ServerHandle
from deeplink.registration import register_scheme, unregister_scheme

__all__ = [
    "Channel",
    "DeepLink",
    "DeepLinkError",
    "DeepLinkSettings",
    "IpcError",
    "ListenerState",
    "MessageTooLargeError",
    "Posture",
    "RegistrationError",
    "ServerHandle",
    "load_settings",
    "register_scheme",
    "unregister_scheme",
]
