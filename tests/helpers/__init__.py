from tests.helpers.recorder import MessageRecorder
from tests.helpers.wait import wait_until

__all__ = ["MessageRecorder", "wait_until"]
