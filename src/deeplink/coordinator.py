"""Single-instance coordination for a deep-link handling application.

``DeepLink`` decides at startup whether this launch becomes the primary
instance (serves the channel) or a secondary one (forwards its link and
exits), and owns the listener until it is closed.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import TYPE_CHECKING

from deeplink.config import DeepLinkSettings
from deeplink.errors import IpcError
from deeplink.instance_lock import InstanceLock
from deeplink.ipc.channel import Channel
from deeplink.ipc.naming import is_deep_link, lock_path_for, normalize_scheme
from deeplink.limits import FORWARD_POLL_SECONDS
from deeplink.paths import ensure_runtime_dir
from deeplink.registration import default_executable, register_scheme, unregister_scheme

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path
    from types import TracebackType

    from deeplink.ipc.channel import ServerHandle

    MessageHandler = Callable[[str], None]

logger = logging.getLogger(__name__)

_WAIT_SLICE_SECONDS = 0.5


class ListenerState(Enum):
    """Whether this coordinator currently runs an accept loop."""

    STOPPED = "stopped"
    LISTENING = "listening"


class Posture(Enum):
    """Role this launch settled into after ``run_or_forward``."""

    UNDECIDED = "undecided"
    PRIMARY = "primary"
    SECONDARY = "secondary"


class DeepLink:
    """Coordinator that keeps one active instance per URL scheme.

    Usage::

        with DeepLink("myapp") as link:
            link.set_on_message(open_link)
            if not link.run_or_forward(sys.argv[1:]):
                return 0  # forwarded to the running instance
            run_event_loop()

    The callback runs on the listener thread for forwarded links and on the
    caller's thread for the launch's own link; UI code must marshal itself.
    """

    def __init__(
        self,
        scheme: str,
        *,
        settings: DeepLinkSettings | None = None,
        channel: Channel | None = None,
        lock: InstanceLock | None = None,
    ) -> None:
        self._scheme = normalize_scheme(scheme)
        self._settings = settings or DeepLinkSettings()
        self._channel = channel or Channel.for_scheme(self._scheme, self._settings)
        if lock is None:
            runtime_dir = ensure_runtime_dir(self._settings.resolved_runtime_dir())
            lock = InstanceLock(lock_path_for(self._channel.name, runtime_dir), scheme=self._scheme)
        self._lock = lock
        self._on_message: MessageHandler | None = None
        self._handle: ServerHandle | None = None
        self._posture = Posture.UNDECIDED

    @property
    def scheme(self) -> str:
        return self._scheme

    @property
    def channel(self) -> Channel:
        return self._channel

    @property
    def posture(self) -> Posture:
        return self._posture

    @property
    def is_primary(self) -> bool:
        return self._posture is Posture.PRIMARY

    @property
    def state(self) -> ListenerState:
        handle = self._handle
        if handle is not None and handle.is_running:
            return ListenerState.LISTENING
        return ListenerState.STOPPED

    def set_on_message(self, on_message: MessageHandler | None) -> None:
        """Register the callback invoked for every link received while primary."""
        self._on_message = on_message

    def run_or_forward(self, args: Sequence[str]) -> bool:
        """Become the primary instance, or forward the last argument to it.

        Args:
            args: Command-line arguments without the program name; only the
                last one is considered as a deep link.

        Returns:
            ``True`` when this launch is primary and should keep running,
            ``False`` when the link was forwarded and the caller should exit.

        Raises:
            IpcError: On channel failures, or when another launch holds the
                instance lock but its channel never comes up.
            RuntimeError: If this coordinator is already listening.
        """
        if self._handle is not None:
            msg = "Listener is already running"
            raise RuntimeError(msg)

        payload = args[-1] if args else None

        if self._channel.probe():
            self._forward(payload)
            return False

        if not self._lock.acquire():
            holder = self._lock.get_holder_info()
            logger.info(
                "Instance lock for %s:// held by pid %s; waiting for its channel",
                self._scheme,
                holder.pid if holder is not None else "unknown",
            )
            if self._wait_for_channel_or_lock():
                self._forward(payload)
                return False
            logger.info("Instance lock for %s:// was released; taking over", self._scheme)

        try:
            self._handle = self._channel.serve(self._dispatch)
        except BaseException:
            self._lock.release()
            raise
        self._posture = Posture.PRIMARY
        logger.info(
            "Primary instance for %s:// listening on %s", self._scheme, self._channel.address
        )

        if payload is not None and self._on_message is not None:
            if is_deep_link(payload, self._scheme):
                self._on_message(payload)
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the listener exits or *timeout* elapses.

        Waits in short slices so ``KeyboardInterrupt`` is delivered promptly.

        Returns:
            ``True`` if no listener is running when the wait ends.

        Raises:
            IpcError: If the accept loop died on a channel failure rather
                than a ``close()``.
        """
        handle = self._handle
        if handle is None:
            return True
        deadline = None if timeout is None else time.monotonic() + timeout
        while handle.is_running:
            remaining = _WAIT_SLICE_SECONDS
            if deadline is not None:
                remaining = min(remaining, deadline - time.monotonic())
                if remaining <= 0:
                    return False
            handle._thread.join(remaining)
        if handle.error is not None:
            raise handle.error
        return True

    def close(self) -> None:
        """Stop the listener (if primary) and release the instance lock."""
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            self._channel.stop(handle)
        finally:
            self._lock.release()
        logger.info("Primary instance for %s:// shut down", self._scheme)

    def __enter__(self) -> DeepLink:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def register_scheme(
        self,
        executable_path: str | Path | None = None,
        *,
        arguments: Sequence[str] = (),
    ) -> None:
        """Register this coordinator's scheme with the OS.

        Defaults to re-launching the current program.
        """
        if executable_path is None:
            command = default_executable()
            executable_path = command[0]
            arguments = [*command[1:], *arguments]
        register_scheme(self._scheme, executable_path, arguments=arguments)

    def unregister_scheme(self) -> None:
        unregister_scheme(self._scheme)

    def _dispatch(self, message: str) -> None:
        on_message = self._on_message
        if on_message is not None:
            on_message(message)

    def _forward(self, payload: str | None) -> None:
        self._posture = Posture.SECONDARY
        if payload is None:
            return
        if not self._channel.send(payload):
            logger.warning(
                "Primary instance for %s:// went away before the link was forwarded",
                self._scheme,
            )

    def _wait_for_channel_or_lock(self) -> bool:
        """Poll until the lock holder serves its channel or gives the lock up.

        Returns:
            ``True`` when the channel came up (forward to it), ``False`` when
            this coordinator acquired the lock instead (become primary).
        """
        deadline = time.monotonic() + self._settings.forward_wait_seconds
        while True:
            if self._channel.probe():
                return True
            if self._lock.acquire():
                return False
            if time.monotonic() >= deadline:
                msg = (
                    f"Instance lock {self._lock.path} is held but channel "
                    f"{self._channel.address} never came up"
                )
                raise IpcError(msg, address=self._channel.address)
            time.sleep(FORWARD_POLL_SECONDS)


__all__ = ["DeepLink", "ListenerState", "Posture"]
