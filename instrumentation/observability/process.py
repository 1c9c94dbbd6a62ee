"""Process statistics read at record time."""

import os
import time

import psutil

_process: psutil.Process = None


def current_process() -> psutil.Process:
    """The psutil handle for this process, re-resolved after a fork."""
    global _process
    if _process is None or _process.pid != os.getpid():
        _process = psutil.Process()
    return _process


def memory_bytes() -> int:
    """Resident memory of this process in bytes."""
    return current_process().memory_info().rss


def thread_count() -> int:
    """Number of OS threads in this process."""
    return current_process().num_threads()


class Uptime:
    """Monotonic clock started at construction."""

    def __init__(self):
        self._started = time.monotonic()

    def seconds(self) -> float:
        return time.monotonic() - self._started
