"""Asynchronous decoding of selected sources.

Decoding runs on a :class:`~sketchlab.core.threading.ThreadController`
worker. Each distinct source (keyed by the sha256 of its content) is decoded
at most once while it is in flight and decoded assets are kept in a small
LRU cache. Only the most recently selected source is *current*: completions
for anything else are cached but otherwise ignored, so a slow decode of an
abandoned source can never overwrite a newer selection.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Callable, Dict, List, Optional

from sketchlab.core.errors import DecodeFailure
from sketchlab.core.threading import ThreadController
from sketchlab.data.image_io import ImageAsset, decode_image_bytes, source_id_for


LOGGER = logging.getLogger(__name__)

Decoder = Callable[..., ImageAsset]


@dataclass(frozen=True)
class SourceReference:
    """Encoded content of a selected image plus a display name."""

    content: bytes
    name: str = ""

    @cached_property
    def key(self) -> str:
        return source_id_for(self.content)

    @classmethod
    def from_path(cls, path: Path | str) -> "SourceReference":
        resolved = Path(path)
        try:
            content = resolved.read_bytes()
        except OSError as exc:
            raise DecodeFailure(f"Could not read {resolved}: {exc}") from exc
        return cls(content, resolved.name)


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class SourceLoader:
    """Decode sources in the background, once per distinct content."""

    def __init__(
        self,
        thread_controller: ThreadController,
        *,
        decoder: Decoder = decode_image_bytes,
        cache_entries: int = 4,
        on_loaded: Optional[Callable[[ImageAsset], None]] = None,
        on_failed: Optional[Callable[[DecodeFailure], None]] = None,
    ) -> None:
        self._controller = thread_controller
        self._decoder = decoder
        self._cache_entries = max(0, int(cache_entries))
        self._cache: "OrderedDict[str, ImageAsset]" = OrderedDict()
        self._inflight: Dict[str, concurrent.futures.Future] = {}
        self._lock = threading.RLock()
        self._current_key: Optional[str] = None
        self._status = LoadStatus.IDLE
        self._last_error: Optional[DecodeFailure] = None
        self.on_loaded = on_loaded
        self.on_failed = on_failed
        self.decode_count = 0

    @property
    def status(self) -> LoadStatus:
        return self._status

    @property
    def current_key(self) -> Optional[str]:
        return self._current_key

    @property
    def last_error(self) -> Optional[DecodeFailure]:
        return self._last_error

    def cached_keys(self) -> List[str]:
        with self._lock:
            return list(self._cache)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def request(self, reference: SourceReference) -> concurrent.futures.Future:
        """Return a future for the decoded asset without changing the selection."""

        key = reference.key
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                LOGGER.debug("Decoded source served from cache", extra={"source_id": key[:12]})
                return _completed(cached)
            inflight = self._inflight.get(key)
            if inflight is not None:
                LOGGER.debug("Joining in-flight decode", extra={"source_id": key[:12]})
                return inflight
            future = self._controller.submit(self._decode, reference, key)
            self._inflight[key] = future
            return future

    def select(self, reference: SourceReference) -> concurrent.futures.Future:
        """Make ``reference`` the current source and start decoding it."""

        key = reference.key
        with self._lock:
            self._current_key = key
            self._last_error = None
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                self._status = LoadStatus.LOADED
                LOGGER.info(
                    "Source selected from cache",
                    extra={"source_id": key[:12], "source_name": reference.name},
                )
                if self.on_loaded is not None:
                    self.on_loaded(cached)
                return _completed(cached)
            self._status = LoadStatus.LOADING
            LOGGER.info(
                "Source selected", extra={"source_id": key[:12], "source_name": reference.name}
            )
            return self.request(reference)

    def reject(self, failure: DecodeFailure) -> concurrent.futures.Future:
        """Record a selection that failed before decoding could start.

        The previous selection is abandoned as with :meth:`select`, so any
        decode still in flight for it completes silently.
        """

        with self._lock:
            self._current_key = None
            self._status = LoadStatus.FAILED
            self._last_error = failure
            LOGGER.error("Source could not be read", exc_info=failure)
            if self.on_failed is not None:
                self.on_failed(failure)
        future: concurrent.futures.Future = concurrent.futures.Future()
        future.set_exception(failure)
        return future

    def reset(self) -> None:
        """Forget the current selection; pending decodes complete silently."""

        with self._lock:
            self._current_key = None
            self._status = LoadStatus.IDLE
            self._last_error = None

    def _decode(self, reference: SourceReference, key: str) -> ImageAsset:
        with self._lock:
            self.decode_count += 1
        try:
            asset = self._decoder(reference.content, source_id=key)
        except DecodeFailure as exc:
            self._finish_failure(key, exc)
            raise
        except Exception as exc:
            failure = DecodeFailure(f"Could not decode source: {exc}", source_id=key)
            self._finish_failure(key, failure)
            raise failure from exc
        if reference.name:
            asset.metadata.setdefault("filename", reference.name)
        self._finish_success(key, asset)
        return asset

    def _finish_success(self, key: str, asset: ImageAsset) -> None:
        with self._lock:
            self._inflight.pop(key, None)
            if self._cache_entries:
                self._cache[key] = asset
                self._cache.move_to_end(key)
                while len(self._cache) > self._cache_entries:
                    self._cache.popitem(last=False)
            if key != self._current_key:
                LOGGER.warning("Ignoring completion of superseded source", extra={"source_id": key[:12]})
                return
            self._status = LoadStatus.LOADED
            LOGGER.info("Source decoded", extra={"source_id": key[:12], "size": asset.shape})
            if self.on_loaded is not None:
                self.on_loaded(asset)

    def _finish_failure(self, key: str, failure: DecodeFailure) -> None:
        with self._lock:
            self._inflight.pop(key, None)
            if key != self._current_key:
                LOGGER.warning(
                    "Ignoring failure of superseded source", extra={"source_id": key[:12]}
                )
                return
            self._status = LoadStatus.FAILED
            self._last_error = failure
            LOGGER.error(
                "Source could not be decoded",
                exc_info=failure,
                extra={"source_id": key[:12]},
            )
            if self.on_failed is not None:
                self.on_failed(failure)


def _completed(asset: ImageAsset) -> concurrent.futures.Future:
    future: concurrent.futures.Future = concurrent.futures.Future()
    future.set_result(asset)
    return future


__all__ = ["LoadStatus", "SourceLoader", "SourceReference"]
