"""Cross-platform process liveness checks."""

from __future__ import annotations

import psutil


def pid_exists(pid: int) -> bool:
    """Return whether *pid* appears to refer to a live process."""
    if pid <= 0:
        return False
    return psutil.pid_exists(pid)
