"""Local point-to-point channel: probe, one-shot send, and a blocking accept loop."""

from __future__ import annotations

import contextlib
import logging
import socket
import threading
from typing import TYPE_CHECKING

from deeplink.errors import IpcError, MessageTooLargeError
from deeplink.ipc.naming import channel_name
from deeplink.ipc.transports import transport_for
from deeplink.limits import (
    MAX_MESSAGE_BYTES,
    PROBE_TIMEOUT_SECONDS,
    READ_CHUNK_BYTES,
    SEND_TIMEOUT_SECONDS,
    WAKE_TIMEOUT_SECONDS,
)
from deeplink.paths import ensure_runtime_dir

if TYPE_CHECKING:
    from collections.abc import Callable

    from deeplink.config import DeepLinkSettings
    from deeplink.ipc.transports import Transport

    MessageHandler = Callable[[str], None]

logger = logging.getLogger(__name__)


class ServerHandle:
    """Handle returned by ``Channel.serve``; only used to request shutdown.

    Attributes:
        address: Socket path or endpoint file the listener is published at.
        transport_type: Identifier string (``socket`` or ``tcp``).
        error: The failure that ended the accept loop early, if any.
    """

    def __init__(self, listener: socket.socket, *, address: str, transport_type: str) -> None:
        self.address = address
        self.transport_type = transport_type
        self.error: IpcError | None = None
        self._listener = listener
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._stop_lock = threading.Lock()
        self._closed = False

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def is_running(self) -> bool:
        """Whether the accept loop thread is still alive."""
        return self._thread is not None and self._thread.is_alive()

    def __repr__(self) -> str:
        return (
            f"ServerHandle(transport_type={self.transport_type!r}, "
            f"address={self.address!r}, running={self.is_running})"
        )


class Channel:
    """A named local byte-stream rendezvous between unrelated processes.

    One message per connection: the client writes its payload and closes,
    the server reads until EOF and hands the decoded text to a callback.

    Usage::

        channel = Channel.for_scheme("myapp")
        if channel.probe():
            channel.send("myapp://open?id=7")
        else:
            handle = channel.serve(print)
            ...
            channel.stop(handle)
    """

    def __init__(
        self,
        name: str,
        transport: Transport,
        *,
        max_message_bytes: int = MAX_MESSAGE_BYTES,
        probe_timeout: float = PROBE_TIMEOUT_SECONDS,
        send_timeout: float = SEND_TIMEOUT_SECONDS,
    ) -> None:
        self._name = name
        self._transport = transport
        self._max_message_bytes = max_message_bytes
        self._probe_timeout = probe_timeout
        self._send_timeout = send_timeout

    @classmethod
    def for_scheme(cls, scheme: str, settings: DeepLinkSettings | None = None) -> Channel:
        """Build the channel whose name is derived from *scheme*."""
        from deeplink.config import DeepLinkSettings

        settings = settings or DeepLinkSettings()
        name = channel_name(scheme)
        runtime_dir = ensure_runtime_dir(settings.resolved_runtime_dir())
        return cls(
            name,
            transport_for(name, runtime_dir, settings.transport),
            max_message_bytes=settings.max_message_bytes,
            probe_timeout=settings.probe_timeout_seconds,
            send_timeout=settings.send_timeout_seconds,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def address(self) -> str:
        return self._transport.address

    @property
    def transport_type(self) -> str:
        return self._transport.transport_type

    @property
    def max_message_bytes(self) -> int:
        return self._max_message_bytes

    def probe(self) -> bool:
        """Return whether a server is currently listening on this channel.

        Raises:
            IpcError: If the mechanism fails for a reason other than absence.
        """
        return self._transport.probe(self._probe_timeout)

    def send(self, message: str | bytes) -> bool:
        """Deliver *message* to the listening server in a single attempt.

        Returns:
            ``True`` when the payload was handed to a listener, ``False`` when
            nobody was listening (a lost race; nothing else to do).

        Raises:
            MessageTooLargeError: If the payload exceeds the channel bound.
            IpcError: For other connect/write failures.
        """
        payload = message.encode("utf-8") if isinstance(message, str) else bytes(message)
        if len(payload) > self._max_message_bytes:
            raise MessageTooLargeError(
                len(payload), self._max_message_bytes, address=self.address
            )

        try:
            sock = self._transport.connect(self._send_timeout)
        except (FileNotFoundError, ConnectionRefusedError):
            logger.debug("No listener on %s; dropping message", self.address)
            return False
        except OSError as exc:
            msg = f"Failed to connect to channel {self.address}: {exc}"
            raise IpcError(msg, address=self.address) from exc

        with sock:
            try:
                sock.sendall(payload)
            except (BrokenPipeError, ConnectionResetError):
                logger.debug("Listener on %s went away mid-send", self.address)
                return False
            except OSError as exc:
                msg = f"Failed to write to channel {self.address}: {exc}"
                raise IpcError(msg, address=self.address) from exc

        logger.debug("Sent %d bytes to %s", len(payload), self.address)
        return True

    def serve(self, on_message: MessageHandler) -> ServerHandle:
        """Bind the channel and start the accept loop on a background thread.

        Raises:
            IpcError: If the channel cannot be bound (already served, permission denied).
        """
        listener = self._transport.bind()
        handle = ServerHandle(
            listener,
            address=self.address,
            transport_type=self.transport_type,
        )
        thread = threading.Thread(
            target=self._serve_forever,
            args=(handle, on_message),
            name=f"{self._name}-listener",
            daemon=True,
        )
        handle._thread = thread
        thread.start()
        logger.info("Channel %s serving at %s", self._name, self.address)
        return handle

    def stop(self, handle: ServerHandle) -> None:
        """Stop the accept loop and wait for its thread to exit.

        Idempotent: every call returns only after the loop thread is gone, and
        no callback runs after that.
        """
        with handle._stop_lock:
            first = not handle._stop_event.is_set()
            handle._stop_event.set()
        if first:
            self._wake(handle)

        thread = handle._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

        with handle._stop_lock:
            if handle._closed:
                return
            handle._closed = True
        self._transport.cleanup(handle._listener)
        logger.info("Channel %s stopped", self._name)

    def _wake(self, handle: ServerHandle) -> None:
        """Unblock a pending ``accept`` with a throwaway self-connection."""
        try:
            with self._transport.connect(WAKE_TIMEOUT_SECONDS):
                pass
        except OSError as exc:
            logger.debug(
                "Wake-up connect to %s failed (%s); shutting listener down", self.address, exc
            )
            with contextlib.suppress(OSError):
                handle._listener.shutdown(socket.SHUT_RDWR)

    def _serve_forever(self, handle: ServerHandle, on_message: MessageHandler) -> None:
        listener = handle._listener
        while not handle.stop_requested:
            try:
                conn, _ = listener.accept()
            except OSError as exc:
                if handle.stop_requested:
                    break
                logger.error("Accept failed on %s: %s", self.address, exc)
                handle.error = IpcError(
                    f"Accept failed on channel {self.address}: {exc}",
                    address=self.address,
                )
                break

            with conn:
                if handle.stop_requested:
                    break
                payload = self._read_payload(conn)

            if payload is not None:
                self._dispatch(payload, on_message)

        logger.debug("Accept loop for %s exited", self._name)

    def _read_payload(self, conn: socket.socket) -> bytes | None:
        """Read until the peer closes; ``None`` for empty, oversized, or broken reads."""
        conn.settimeout(None)
        chunks: list[bytes] = []
        total = 0
        while True:
            try:
                chunk = conn.recv(READ_CHUNK_BYTES)
            except OSError as exc:
                logger.warning("Read failed on %s: %s", self.address, exc)
                return None
            if not chunk:
                break
            total += len(chunk)
            if total > self._max_message_bytes:
                logger.warning(
                    "Dropping oversized message on %s (more than %d bytes)",
                    self.address,
                    self._max_message_bytes,
                )
                return None
            chunks.append(chunk)

        if not total:
            logger.debug("Ignoring empty connection on %s", self.address)
            return None
        return b"".join(chunks)

    def _dispatch(self, payload: bytes, on_message: MessageHandler) -> None:
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning(
                "Dropping non UTF-8 message on %s (%d bytes)", self.address, len(payload)
            )
            return
        try:
            on_message(text)
        except Exception:
            logger.exception("Unhandled error in deep-link message handler")


__all__ = ["Channel", "ServerHandle"]
