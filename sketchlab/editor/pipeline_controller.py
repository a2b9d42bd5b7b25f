"""Event-driven façade over the pipeline graph, source loader and outputs."""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from sketchlab.core.errors import DecodeFailure
from sketchlab.core.scheduling import TimerFactory
from sketchlab.core.settings_manager import SettingsManager
from sketchlab.core.threading import ThreadController
from sketchlab.data.gallery import GalleryEntry, GalleryStore
from sketchlab.data.image_io import ImageAsset, decode_image_bytes
from sketchlab.processing.crop import CropRegion, CropSelector
from sketchlab.processing.filters import EdgeAlgorithm
from sketchlab.processing.output import SOURCE_STAGE, Downloader, OutputAdapter
from sketchlab.processing.pipeline_graph import PipelineGraph, StageOutput
from sketchlab.processing.source_loader import LoadStatus, SourceLoader, SourceReference
from sketchlab.processing.stages import (
    CropParams,
    EdgeParams,
    SketchParams,
    ThresholdBounds,
    TonalParams,
    default_stages,
)
from sketchlab.processing.surface import ProcessingSurface


LOGGER = logging.getLogger(__name__)

CROP_STAGE = "crop"
ADJUST_STAGE = "adjust"
SKETCH_STAGE = "sketch"
EDGES_STAGE = "edges"

SourceInput = Union[SourceReference, bytes, str, Path]


def edge_bounds_from_settings(settings: SettingsManager) -> Dict[EdgeAlgorithm, ThresholdBounds]:
    """Read the per-algorithm threshold ranges from ``settings``."""

    bounds: Dict[EdgeAlgorithm, ThresholdBounds] = {}
    for algorithm in EdgeAlgorithm:
        prefix = f"edge/{algorithm.value}"
        bounds[algorithm] = ThresholdBounds(
            settings.get_float(f"{prefix}/threshold_min"),
            settings.get_float(f"{prefix}/threshold_max"),
        )
    return bounds


class PipelineController:
    """Coordinates source selection, crop interaction, parameters and outputs.

    Parameter setters arm the debounced recompute of the affected stage, so a
    burst of slider moves only produces one recomputation. Reads go through
    the graph and are always consistent with the latest parameters.
    """

    def __init__(
        self,
        *,
        settings: Optional[SettingsManager] = None,
        thread_controller: Optional[ThreadController] = None,
        gallery: Optional[GalleryStore] = None,
        downloader: Optional[Downloader] = None,
        timer_factory: Optional[TimerFactory] = None,
        surface: Optional[ProcessingSurface] = None,
        decoder: Callable[..., ImageAsset] = decode_image_bytes,
    ) -> None:
        self.settings = settings or SettingsManager()
        self._owns_threads = thread_controller is None
        self.thread_controller = thread_controller or ThreadController(max_workers=1)
        self.default_edge_threshold = self.settings.get_float("edge/default_threshold", 50.0)
        self.preserve_outputs_while_loading = self.settings.get_bool(
            "loader/preserve_outputs_while_loading", True
        )
        self.graph = PipelineGraph(
            default_stages(
                edge_threshold=self.default_edge_threshold,
                sketch_threshold=self.settings.get_float("sketch/threshold", 150.0),
            ),
            surface=surface,
            debounce_seconds=self.settings.get_int("pipeline/debounce_ms", 100) / 1000.0,
            timer_factory=timer_factory,
            edge_bounds=edge_bounds_from_settings(self.settings),
        )
        self.loader = SourceLoader(
            self.thread_controller,
            decoder=decoder,
            cache_entries=self.settings.get_int("loader/cache_entries", 4),
            on_loaded=self._on_source_loaded,
            on_failed=self._on_source_failed,
        )
        self.adapter = OutputAdapter(self.graph, downloader=downloader, gallery=gallery)
        self.crop_selector: Optional[CropSelector] = None
        self._selected_stage = ADJUST_STAGE

    # ------------------------------------------------------------------
    # Source selection
    # ------------------------------------------------------------------
    @property
    def status(self) -> LoadStatus:
        return self.loader.status

    def select_source(self, source: SourceInput) -> concurrent.futures.Future:
        """Start decoding ``source``; the returned future resolves to the asset."""

        try:
            reference = self._reference_for(source)
        except DecodeFailure as exc:
            return self.loader.reject(exc)
        if not self.preserve_outputs_while_loading:
            self.graph.clear_source()
        return self.loader.select(reference)

    def _reference_for(self, source: SourceInput) -> SourceReference:
        if isinstance(source, SourceReference):
            return source
        if isinstance(source, (bytes, bytearray)):
            return SourceReference(bytes(source))
        return SourceReference.from_path(source)

    def _on_source_loaded(self, asset: ImageAsset) -> None:
        self.graph.set_parameters(CROP_STAGE, CropParams())
        self.graph.set_source(asset)
        if self.crop_selector is None:
            self.crop_selector = CropSelector(asset.width, asset.height)
        else:
            self.crop_selector.reset(asset.width, asset.height)

    def _on_source_failed(self, failure: DecodeFailure) -> None:
        self.graph.clear_source()
        self.crop_selector = None

    # ------------------------------------------------------------------
    # Crop interaction
    # ------------------------------------------------------------------
    def _selector(self) -> CropSelector:
        if self.crop_selector is None:
            raise RuntimeError("No source image is loaded")
        return self.crop_selector

    def set_display_size(self, width: float, height: float) -> None:
        self._selector().resize_display(width, height)

    def begin_crop_drag(self, x: float, y: float) -> CropRegion:
        return self._selector().pointer_down(x, y)

    def update_crop_drag(self, x: float, y: float) -> Optional[CropRegion]:
        return self._selector().pointer_move(x, y)

    def end_crop_drag(self, x: Optional[float] = None, y: Optional[float] = None) -> Optional[CropRegion]:
        return self._selector().pointer_up(x, y)

    def leave_crop_area(self) -> Optional[CropRegion]:
        return self._selector().pointer_leave()

    def apply_crop(self) -> CropRegion:
        """Push the selected rectangle into the crop stage."""

        region = self._selector().region
        self.graph.set_parameters(CROP_STAGE, CropParams(region), debounce=True)
        LOGGER.info("Crop applied", extra={"component": "PipelineController", "region": region.as_box()})
        return region

    def reset_crop(self) -> None:
        self.graph.set_parameters(CROP_STAGE, CropParams(), debounce=True)
        if self.crop_selector is not None:
            self.crop_selector.reset()

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------
    def set_adjustments(self, brightness: float, contrast: float) -> None:
        self.graph.set_parameters(ADJUST_STAGE, TonalParams(brightness, contrast), debounce=True)

    def reset_adjustments(self) -> None:
        self.set_adjustments(0.0, 0.0)

    def set_edge_threshold(self, threshold: float) -> None:
        params = self.graph.get_stage(EDGES_STAGE).params
        self.graph.set_parameters(EDGES_STAGE, replace(params, threshold=threshold), debounce=True)

    def reset_edge_threshold(self) -> None:
        self.set_edge_threshold(self.default_edge_threshold)

    def set_edge_algorithm(self, algorithm: EdgeAlgorithm | str) -> None:
        """Switch algorithm, clamping the threshold into the new range."""

        variant = EdgeAlgorithm(algorithm)
        params: EdgeParams = self.graph.get_stage(EDGES_STAGE).params  # type: ignore[assignment]
        bounds = self.graph.processor(EDGES_STAGE).bounds[variant]  # type: ignore[attr-defined]
        updated = EdgeParams(threshold=bounds.clamp(params.threshold), algorithm=variant)
        self.graph.set_parameters(EDGES_STAGE, updated, debounce=True)

    def set_sketch_tone(
        self, brightness: float, contrast: float, threshold: Optional[float] = None
    ) -> None:
        params: SketchParams = self.graph.get_stage(SKETCH_STAGE).params  # type: ignore[assignment]
        updated = SketchParams(
            brightness,
            contrast,
            params.threshold if threshold is None else threshold,
        )
        self.graph.set_parameters(SKETCH_STAGE, updated, debounce=True)

    def flush_pending(self) -> None:
        """Run every armed recompute now."""

        for name in self.graph.get_order():
            self.graph.flush(name)

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------
    @property
    def selected_stage(self) -> str:
        return self._selected_stage

    def select_stage(self, stage: str) -> None:
        if stage != SOURCE_STAGE:
            self.graph.get_stage(stage)
        self._selected_stage = stage

    def output(self, stage: str) -> Optional[StageOutput]:
        return self.graph.get_output(stage)

    def display(self, stage: str) -> Optional[str]:
        """What a view of ``stage`` shows: its output or the nearest upstream one."""

        return self.adapter.display(stage, fallback=True)

    def download(self, stage: str, filename: Optional[str] = None) -> bool:
        return self.adapter.download(stage, filename)

    def save(self, stage: str, title: str) -> GalleryEntry:
        return self.adapter.save(stage, title)

    def save_selected(self, title: str) -> GalleryEntry:
        return self.save(self._selected_stage, title)

    def shutdown(self) -> None:
        self.graph.close()
        if self._owns_threads:
            self.thread_controller.shutdown()
        LOGGER.debug("Pipeline controller shut down", extra={"component": "PipelineController"})


__all__ = [
    "ADJUST_STAGE",
    "CROP_STAGE",
    "EDGES_STAGE",
    "PipelineController",
    "SKETCH_STAGE",
    "edge_bounds_from_settings",
]
