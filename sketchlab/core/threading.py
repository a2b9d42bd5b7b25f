"""Background execution helpers built on :mod:`concurrent.futures`.

Only work that genuinely suspends (decoding a freshly selected source) goes
through the :class:`ThreadController`. Pixel computation stays on the
caller's thread.
"""
from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Optional


Callback = Callable[[concurrent.futures.Future], None]


class ThreadController:
    """Coordinates threaded execution of background tasks."""

    def __init__(self, max_workers: Optional[int] = None, *, name: str = "sketchlab") -> None:
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=name
        )
        self._pending: Deque[concurrent.futures.Future] = deque()
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)
        self._closed = False

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit(
        self,
        fn: Callable[..., Any],
        *args: Any,
        callback: Optional[Callback] = None,
        **kwargs: Any,
    ) -> concurrent.futures.Future:
        """Submit ``fn`` for background execution."""

        if self._closed:
            raise RuntimeError("ThreadController has been shut down")
        future = self._executor.submit(fn, *args, **kwargs)
        with self._lock:
            self._pending.append(future)
        if callback is not None:
            future.add_done_callback(callback)
        future.add_done_callback(self._cleanup_future)
        self._logger.debug(
            "Task submitted", extra={"component": "ThreadController", "pending": self.pending}
        )
        return future

    def cancel_all(self) -> None:
        """Cancel tasks that have not started yet."""

        with self._lock:
            for future in list(self._pending):
                future.cancel()
            self._pending.clear()
        self._logger.info("Pending background tasks cancelled", extra={"component": "ThreadController"})

    def shutdown(self, wait: bool = True) -> None:
        """Shut down the executor and cancel pending tasks."""

        if self._closed:
            return
        self._closed = True
        self.cancel_all()
        self._executor.shutdown(wait=wait)
        self._logger.info("Thread controller shutdown", extra={"component": "ThreadController"})

    def _cleanup_future(self, future: concurrent.futures.Future) -> None:
        with self._lock:
            if future in self._pending:
                self._pending.remove(future)
        self._logger.debug("Task finished", extra={"component": "ThreadController"})


__all__ = ["ThreadController"]
