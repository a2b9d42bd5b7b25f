"""Stage graph owning every derived output and its invalidation.

The graph holds the source :class:`~sketchlab.data.image_io.ImageAsset`, the
stages (each naming its upstream) and one cached :class:`StageOutput` per
stage. Outputs are recomputed on demand by :meth:`PipelineGraph.get_output`
or eagerly by a per-stage debounced :class:`~sketchlab.core.scheduling.ScheduledTask`.

Changing a stage's parameters marks it and everything downstream stale while
keeping the last output visible. Changing the upstream wiring or the source
discards outputs outright. A recompute records the version of the input it
consumed so stale downstream outputs can never be mistaken for fresh ones.
"""

from __future__ import annotations

import logging
import threading
import traceback
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from sketchlab.core.errors import SurfaceUnavailable
from sketchlab.core.scheduling import ScheduledTask, TimerFactory
from sketchlab.data.image_io import ImageAsset, encode_data_url

from .stages import (
    EdgeAlgorithm,
    Stage,
    StageParams,
    StageProcessor,
    ThresholdBounds,
    build_processors,
    default_stages,
)
from .surface import ProcessingSurface


LOGGER = logging.getLogger(__name__)

Encoder = Callable[[ImageAsset], str]


class PipelineEventKind(str, Enum):
    INVALIDATED = "invalidated"
    DISCARDED = "discarded"
    RECOMPUTED = "recomputed"
    FAILED = "failed"
    SKIPPED = "skipped"
    SOURCE_CHANGED = "source_changed"


@dataclass(frozen=True)
class PipelineEvent:
    kind: PipelineEventKind
    stage: Optional[str] = None


Listener = Callable[[PipelineEvent], None]


@dataclass(frozen=True)
class StageOutput:
    """Result of one recompute of a stage."""

    stage: str
    asset: ImageAsset
    encoded: str
    version: int
    input_token: Hashable


@dataclass
class StageFailure:
    """Report generated when a stage computation raises."""

    stage_name: str
    exception: Exception
    traceback: str


@dataclass
class _StageState:
    stage: Stage
    processor: StageProcessor
    task: ScheduledTask
    output: Optional[StageOutput] = None
    stale: bool = True
    version: int = 0
    failure: Optional[StageFailure] = None
    memo: Dict[str, Any] = field(default_factory=dict)


class PipelineGraph:
    """Pull based recomputation over a linear chain of stages."""

    def __init__(
        self,
        stages: Optional[Iterable[Stage]] = None,
        *,
        surface: Optional[ProcessingSurface] = None,
        encoder: Encoder = encode_data_url,
        debounce_seconds: float = 0.1,
        timer_factory: Optional[TimerFactory] = None,
        edge_bounds: Optional[Mapping[EdgeAlgorithm, ThresholdBounds]] = None,
    ) -> None:
        self._surface = surface or ProcessingSurface()
        self._encoder = encoder
        self._debounce_seconds = float(debounce_seconds)
        self._timer_factory = timer_factory
        self._processors = build_processors(edge_bounds)
        self._states: Dict[str, _StageState] = {}
        self._order: List[str] = []
        self._listeners: List[Listener] = []
        self._source: Optional[ImageAsset] = None
        self._source_version = 0
        self._lock = threading.RLock()
        for stage in default_stages() if stages is None else stages:
            self.add_stage(stage)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------
    @property
    def surface(self) -> ProcessingSurface:
        return self._surface

    def add_stage(self, stage: Stage) -> None:
        with self._lock:
            if stage.name in self._states:
                raise ValueError(f"Stage '{stage.name}' already exists")
            if stage.upstream is not None and stage.upstream not in self._states:
                raise KeyError(f"Unknown upstream stage '{stage.upstream}'")
            processor = self._processors[stage.kind]
            processor.validate(stage.params)
            task = ScheduledTask(
                self._debounce_seconds,
                lambda name=stage.name: self._run_scheduled(name),
                name=f"recompute:{stage.name}",
                timer_factory=self._timer_factory,
            )
            self._states[stage.name] = _StageState(stage, processor, task)
            self._order.append(stage.name)
        LOGGER.debug(
            "Stage added",
            extra={"component": "PipelineGraph", "stage": stage.name, "upstream": stage.upstream},
        )

    def get_stage(self, name: str) -> Stage:
        return self._state(name).stage

    def get_order(self) -> List[str]:
        return list(self._order)

    def processor(self, name: str) -> StageProcessor:
        return self._state(name).processor

    def downstream_of(self, name: str) -> List[str]:
        """Every stage fed directly or transitively by ``name``, in stage order."""

        self._state(name)
        found = set()
        queue = deque([name])
        while queue:
            current = queue.popleft()
            for candidate in self._order:
                if candidate not in found and self._states[candidate].stage.upstream == current:
                    found.add(candidate)
                    queue.append(candidate)
        return [candidate for candidate in self._order if candidate in found]

    def upstream_chain(self, name: str) -> List[str]:
        """Upstream stage names from the nearest to the one reading the source."""

        chain: List[str] = []
        upstream = self._state(name).stage.upstream
        while upstream is not None:
            chain.append(upstream)
            upstream = self._states[upstream].stage.upstream
        return chain

    # ------------------------------------------------------------------
    # Source
    # ------------------------------------------------------------------
    @property
    def source(self) -> Optional[ImageAsset]:
        return self._source

    def set_source(self, asset: ImageAsset) -> None:
        """Install a new source; every stage output is discarded."""

        with self._lock:
            self._source = asset
            self._source_version += 1
            self._emit(PipelineEvent(PipelineEventKind.SOURCE_CHANGED))
            self._discard(self._order)
        LOGGER.info(
            "Source changed",
            extra={"component": "PipelineGraph", "source_id": asset.source_id, "size": asset.shape},
        )

    def clear_source(self) -> None:
        with self._lock:
            self._source = None
            self._source_version += 1
            self._emit(PipelineEvent(PipelineEventKind.SOURCE_CHANGED))
            self._discard(self._order)
        LOGGER.info("Source cleared", extra={"component": "PipelineGraph"})

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def set_parameters(self, name: str, params: StageParams, *, debounce: bool = False) -> None:
        """Replace the parameters of ``name``; the stage and its consumers go stale."""

        with self._lock:
            state = self._state(name)
            state.processor.validate(params)
            if params == state.stage.params and not state.stale:
                return
            state.stage.params = params
            self._mark_stale([name] + self.downstream_of(name))
        if debounce:
            self.schedule_recompute(name)

    def set_upstream(self, name: str, upstream: Optional[str]) -> None:
        """Rewire ``name`` to read from ``upstream`` (``None`` for the source)."""

        with self._lock:
            state = self._state(name)
            if upstream is not None:
                self._state(upstream)
                if upstream == name or upstream in self.downstream_of(name):
                    raise ValueError(f"Connecting '{name}' to '{upstream}' would form a cycle")
            state.stage.upstream = upstream
            self._discard([name] + self.downstream_of(name))

    def invalidate(self, name: str) -> None:
        with self._lock:
            self._mark_stale([name] + self.downstream_of(name))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def is_stale(self, name: str) -> bool:
        return self._state(name).stale

    def version(self, name: str) -> int:
        return self._state(name).version

    def failure(self, name: str) -> Optional[StageFailure]:
        return self._state(name).failure

    def peek_output(self, name: str) -> Optional[StageOutput]:
        """The cached output, possibly stale, without recomputing."""

        return self._state(name).output

    def get_output(self, name: str) -> Optional[StageOutput]:
        """Return the up-to-date output of ``name``, recomputing if needed.

        ``None`` means the stage has nothing to show: no source, a crop with
        no region, a failed computation or a skipped recompute.
        """

        with self._lock:
            try:
                return self._pull(name)
            except SurfaceUnavailable as exc:
                LOGGER.warning(
                    "Recompute skipped",
                    extra={"component": "PipelineGraph", "stage": name, "reason": str(exc)},
                )
                self._emit(PipelineEvent(PipelineEventKind.SKIPPED, name))
                return None

    def resolve_input(self, name: str) -> Optional[Tuple[ImageAsset, Hashable]]:
        """Nearest available upstream output of ``name`` and its identity token."""

        with self._lock:
            return self._resolve_input(name)

    # ------------------------------------------------------------------
    # Debounce
    # ------------------------------------------------------------------
    def schedule_recompute(self, name: str) -> None:
        self._state(name).task.schedule()

    def has_pending(self, name: str) -> bool:
        return self._state(name).task.pending

    def cancel_pending(self, name: str) -> bool:
        return self._state(name).task.cancel()

    def flush(self, name: str) -> bool:
        """Run the pending recompute of ``name`` now."""

        return self._state(name).task.flush()

    def close(self) -> None:
        for state in self._states.values():
            state.task.cancel()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _state(self, name: str) -> _StageState:
        try:
            return self._states[name]
        except KeyError:
            raise KeyError(f"Unknown stage '{name}'") from None

    def _emit(self, event: PipelineEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                LOGGER.exception(
                    "Pipeline listener failed",
                    extra={"component": "PipelineGraph", "event": event.kind.value},
                )

    def _mark_stale(self, names: Iterable[str]) -> None:
        for name in names:
            self._states[name].stale = True
            self._emit(PipelineEvent(PipelineEventKind.INVALIDATED, name))

    def _discard(self, names: Iterable[str]) -> None:
        for name in names:
            state = self._states[name]
            state.output = None
            state.failure = None
            state.stale = True
            state.memo.clear()
            state.version += 1
            self._emit(PipelineEvent(PipelineEventKind.DISCARDED, name))

    def _pull(self, name: str) -> Optional[StageOutput]:
        state = self._state(name)
        if self._source is None:
            return None
        if not state.stale:
            LOGGER.debug("Cache hit", extra={"component": "PipelineGraph", "stage": name})
            return state.output
        return self._recompute(state)

    def _resolve_input(self, name: str) -> Optional[Tuple[ImageAsset, Hashable]]:
        if self._source is None:
            return None
        for upstream in self.upstream_chain(name):
            output = self._pull(upstream)
            if output is not None:
                return output.asset, ("stage", upstream, output.version)
            # A failed stage blocks its dependants; only an absent output falls through.
            if self._states[upstream].failure is not None:
                LOGGER.debug(
                    "Upstream stage failed",
                    extra={"component": "PipelineGraph", "stage": name, "upstream": upstream},
                )
                return None
        return self._source, ("source", self._source.source_id, self._source_version)

    def _recompute(self, state: _StageState) -> Optional[StageOutput]:
        name = state.stage.name
        resolved = self._resolve_input(name)
        if resolved is None:
            state.output = None
            return None
        image, token = resolved
        try:
            with self._surface.lease(image.shape) as scratch:
                pixels = state.processor.compute(image, state.stage.params, scratch, state.memo, token)
                output: Optional[StageOutput] = None
                if pixels is not None:
                    asset = image.derive(np.asarray(pixels), name)
                    output = StageOutput(
                        stage=name,
                        asset=asset,
                        encoded=self._encoder(asset),
                        version=state.version + 1,
                        input_token=token,
                    )
        except SurfaceUnavailable:
            raise
        except Exception as exc:
            state.failure = StageFailure(name, exc, traceback.format_exc())
            state.output = None
            state.stale = False
            state.version += 1
            LOGGER.error(
                "Stage computation failed",
                exc_info=exc,
                extra={"component": "PipelineGraph", "stage": name},
            )
            self._emit(PipelineEvent(PipelineEventKind.FAILED, name))
            return None
        state.version += 1
        state.output = output
        state.failure = None
        state.stale = False
        LOGGER.debug(
            "Stage recomputed",
            extra={"component": "PipelineGraph", "stage": name, "version": state.version},
        )
        self._emit(PipelineEvent(PipelineEventKind.RECOMPUTED, name))
        return output

    def _run_scheduled(self, name: str) -> None:
        with self._lock:
            if name not in self._states:
                return
            for target in [name] + self.downstream_of(name):
                self.get_output(target)


__all__ = [
    "PipelineEvent",
    "PipelineEventKind",
    "PipelineGraph",
    "StageFailure",
    "StageOutput",
]
