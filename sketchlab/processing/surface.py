"""The single reusable scratch buffer stage computations write into."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import numpy as np

from sketchlab.core.errors import SurfaceUnavailable


LOGGER = logging.getLogger(__name__)


class ProcessingSurface:
    """Shared pixel surface handed out to one recomputation at a time.

    The buffer is reallocated only when a lease asks for a different shape.
    Leasing a detached surface, or one that is already leased, raises
    :class:`SurfaceUnavailable`; callers treat that as "skip and retry on the
    next trigger".
    """

    def __init__(self, *, attached: bool = True) -> None:
        self._buffer: Optional[np.ndarray] = None
        self._attached = attached
        self._leased = False
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        with self._lock:
            return self._attached and not self._leased

    @property
    def leased(self) -> bool:
        return self._leased

    def attach(self) -> None:
        with self._lock:
            self._attached = True
        LOGGER.debug("Processing surface attached", extra={"component": "ProcessingSurface"})

    def detach(self) -> None:
        with self._lock:
            self._attached = False
            self._buffer = None
        LOGGER.debug("Processing surface detached", extra={"component": "ProcessingSurface"})

    @contextmanager
    def lease(self, shape: Tuple[int, ...]) -> Iterator[np.ndarray]:
        with self._lock:
            if not self._attached:
                raise SurfaceUnavailable("Processing surface is not attached")
            if self._leased:
                raise SurfaceUnavailable("Processing surface is in use by another recompute")
            if self._buffer is None or self._buffer.shape != tuple(shape):
                self._buffer = np.zeros(tuple(shape), dtype=np.uint8)
            self._leased = True
            buffer = self._buffer
        try:
            yield buffer
        finally:
            with self._lock:
                self._leased = False


__all__ = ["ProcessingSurface"]
