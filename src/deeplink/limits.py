"""Numeric limits and timeouts - no circular dependencies."""

from __future__ import annotations

# Largest payload accepted on a channel. Deep links are single URLs, so this
# comfortably fits any realistic argument while keeping reads bounded.
MAX_MESSAGE_BYTES = 2048

# Socket read chunk size for the accept loop.
READ_CHUNK_BYTES = 4096

PROBE_TIMEOUT_SECONDS = 0.25
SEND_TIMEOUT_SECONDS = 2.0
WAKE_TIMEOUT_SECONDS = 1.0

# How long a launch that lost the instance lock waits for the winner's channel.
FORWARD_WAIT_SECONDS = 2.0
FORWARD_POLL_SECONDS = 0.05

# macOS caps sun_path at 104 bytes, Linux at 108.
MAX_SOCKET_PATH_LENGTH = 100
