"""Cancellable, re-armable delayed tasks used to debounce recomputation.

A :class:`ScheduledTask` wraps a single callback. Every call to
:meth:`ScheduledTask.schedule` cancels the previously armed timer and arms a
new one, so only the most recent request runs. Timers that were already
firing when they got superseded are ignored through a generation counter.

Timers are created through ``timer_factory`` which defaults to
:class:`threading.Timer`; anything with ``start()`` and ``cancel()`` and the
``(interval, function)`` constructor signature can be injected.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Protocol


LOGGER = logging.getLogger(__name__)


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def _default_timer_factory(interval: float, function: Callable[[], None]) -> Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class ScheduledTask:
    """Run ``callback`` once ``delay`` seconds after the last :meth:`schedule`."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Any],
        *,
        name: str = "task",
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self._delay = max(0.0, float(delay))
        self._callback = callback
        self._name = name
        self._timer_factory = timer_factory or _default_timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[Timer] = None
        self._generation = 0

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        """Arm the task, superseding any pending run."""

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                LOGGER.debug("Superseded pending run", extra={"task": self._name})
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self._delay, lambda: self._fire(generation))
            self._timer = timer
        timer.start()
        LOGGER.debug("Scheduled run", extra={"task": self._name, "delay": self._delay})

    def cancel(self) -> bool:
        """Cancel the pending run. Returns ``True`` if one was pending."""

        with self._lock:
            timer = self._timer
            self._timer = None
            self._generation += 1
        if timer is None:
            return False
        timer.cancel()
        LOGGER.debug("Cancelled pending run", extra={"task": self._name})
        return True

    def flush(self) -> bool:
        """Run the pending callback now instead of waiting for the timer."""

        with self._lock:
            timer = self._timer
            if timer is None:
                return False
            self._timer = None
            self._generation += 1
        timer.cancel()
        self._callback()
        return True

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                LOGGER.debug("Ignoring superseded timer", extra={"task": self._name})
                return
            self._timer = None
        self._callback()


__all__ = ["ScheduledTask", "Timer", "TimerFactory"]
