"""Error taxonomy for deep-link coordination and scheme registration."""

from __future__ import annotations


class DeepLinkError(Exception):
    """Base class for all deeplink errors."""


class IpcError(DeepLinkError):
    """A channel bind/connect/read/write failure.

    These reflect the local environment (permissions, name collisions) rather
    than transient conditions, so they are surfaced to the caller and never
    retried.
    """

    def __init__(self, message: str, *, address: str | None = None) -> None:
        super().__init__(message)
        self.address = address


class MessageTooLargeError(IpcError):
    """Raised when a payload exceeds the channel's message bound."""

    def __init__(self, size: int, limit: int, *, address: str | None = None) -> None:
        super().__init__(
            f"Message of {size} bytes exceeds the {limit}-byte channel limit",
            address=address,
        )
        self.size = size
        self.limit = limit


class RegistrationError(DeepLinkError):
    """The OS-level URL scheme association could not be written or removed."""


__all__ = [
    "DeepLinkError",
    "IpcError",
    "MessageTooLargeError",
    "RegistrationError",
]
