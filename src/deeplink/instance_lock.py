"""Per-scheme exclusive lock deciding which launch becomes the primary instance.

Probing a channel and then binding it is not atomic: two launches started at
the same moment can both see an empty channel. The lock closes that window;
whoever acquires it serves the channel, everyone else forwards to it.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import socket
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from filelock import FileLock, Timeout

from deeplink.atomic import atomic_write

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LockInfo:
    """Who holds an instance lock, as recorded in its sidecar file."""

    pid: int
    hostname: str
    scheme: str | None = None


class InstanceLock:
    """Non-blocking file lock owned by the primary instance of one scheme.

    Backed by filelock, so the OS drops the lock when the holder exits, even
    on a crash; a failed ``acquire`` therefore always means a live holder.
    Holder details live in a ``.info`` sidecar next to the lock file and are
    informational only: the sidecar may be missing or left over from an
    earlier holder, so it never decides ownership.

    Usage:
        lock = InstanceLock(runtime_dir / "deeplink-myapp.lock", scheme="myapp")
        if not lock.acquire():
            forward_link()
            return
        try:
            serve()
        finally:
            lock.release()
    """

    def __init__(self, lock_path: Path, *, scheme: str | None = None) -> None:
        self._lock_path = lock_path
        self._info_path = lock_path.with_suffix(".info")
        self._scheme = scheme
        self._lock = FileLock(str(lock_path), blocking=False)
        self._acquired = False

    @property
    def path(self) -> Path:
        return self._lock_path

    @property
    def is_held(self) -> bool:
        return self._acquired

    def acquire(self) -> bool:
        """Try to take the lock without waiting.

        Returns:
            ``True`` if this object now holds the lock, ``False`` if another
            holder does.
        """
        if self._acquired:
            return True

        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire(timeout=0)
        except Timeout:
            logger.debug("Instance lock %s is held by another launch", self._lock_path)
            return False
        self._acquired = True
        self._write_holder_info()
        return True

    def release(self) -> None:
        if not self._acquired:
            return

        # Keep the lock file; waiters may already hold an fd on this inode.
        with contextlib.suppress(OSError):
            self._info_path.unlink(missing_ok=True)
        try:
            self._lock.release()
        finally:
            self._acquired = False

    def get_holder_info(self) -> LockInfo | None:
        """Read the holder sidecar; ``None`` when missing or unreadable."""
        try:
            data = json.loads(self._info_path.read_text(encoding="utf-8"))
            return LockInfo(
                pid=int(data["pid"]),
                hostname=str(data.get("hostname", "")),
                scheme=data.get("scheme"),
            )
        except (OSError, ValueError, KeyError, TypeError, AttributeError):
            return None

    def _write_holder_info(self) -> None:
        """Record this process as the holder.

        Best effort: the lock is valid without it, only ``get_holder_info()``
        loses its input.
        """
        info = LockInfo(pid=os.getpid(), hostname=socket.gethostname(), scheme=self._scheme)
        with contextlib.suppress(OSError):
            atomic_write(self._info_path, json.dumps(asdict(info)))

    def __enter__(self) -> InstanceLock:
        if not self.acquire():
            raise Timeout(str(self._lock_path))
        return self

    def __exit__(self, *args: object) -> None:
        self.release()


__all__ = ["InstanceLock", "LockInfo"]
