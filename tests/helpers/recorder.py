from __future__ import annotations

import threading

from tests.helpers.wait import ci_timeout


class MessageRecorder:
    """Thread-safe message callback that records what it receives."""

    def __init__(self) -> None:
        self._messages: list[str] = []
        self._threads: list[str] = []
        self._cond = threading.Condition()

    def __call__(self, message: str) -> None:
        with self._cond:
            self._messages.append(message)
            self._threads.append(threading.current_thread().name)
            self._cond.notify_all()

    @property
    def messages(self) -> list[str]:
        with self._cond:
            return list(self._messages)

    @property
    def threads(self) -> list[str]:
        with self._cond:
            return list(self._threads)

    def wait_for(self, count: int, timeout: float = 5.0) -> list[str]:
        """Block until at least *count* messages arrived; return a snapshot."""
        with self._cond:
            if not self._cond.wait_for(lambda: len(self._messages) >= count, ci_timeout(timeout)):
                raise TimeoutError(
                    f"Expected {count} messages, got {len(self._messages)}: {self._messages}"
                )
            return list(self._messages)
