"""Interactive editing façade driving the transform pipeline."""

from .pipeline_controller import (
    ADJUST_STAGE,
    CROP_STAGE,
    EDGES_STAGE,
    SKETCH_STAGE,
    PipelineController,
    edge_bounds_from_settings,
)

__all__ = [
    "ADJUST_STAGE",
    "CROP_STAGE",
    "EDGES_STAGE",
    "PipelineController",
    "SKETCH_STAGE",
    "edge_bounds_from_settings",
]
