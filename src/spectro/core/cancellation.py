"""Cooperative cancellation for long-running analysis calls."""

import threading

from spectro.errors import Cancelled


class CancellationToken:
    """
    Flag polled by the pipeline at chunk and frame granularity.

    Thread-safe: ``cancel()`` is typically called from the thread that
    supersedes a run, while the worker polls ``raise_if_cancelled()``.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()
