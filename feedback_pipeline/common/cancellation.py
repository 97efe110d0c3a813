"""Cooperative cancellation shared by the append client and the stages."""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe flag that a signal handler can set to stop a run.

    Waiting on the token doubles as an interruptible sleep: ``wait`` returns
    ``True`` as soon as cancellation is requested.
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()

    def cancel(self) -> None:
        self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        return self._is_cancelled.is_set()

    def wait(self, seconds: float) -> bool:
        return self._is_cancelled.wait(timeout=seconds)

    def reset(self) -> None:
        self._is_cancelled.clear()
