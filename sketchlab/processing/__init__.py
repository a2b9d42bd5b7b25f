"""Image transform pipeline: filters, crop selection, stages and the graph."""

from .crop import CropRegion, CropSelector, SelectorState
from .filters import EdgeAlgorithm
from .output import FileDownloader, OutputAdapter, SOURCE_STAGE
from .pipeline_graph import (
    PipelineEvent,
    PipelineEventKind,
    PipelineGraph,
    StageFailure,
    StageOutput,
)
from .source_loader import LoadStatus, SourceLoader, SourceReference
from .stages import (
    CropParams,
    EdgeParams,
    SketchParams,
    Stage,
    StageKind,
    ThresholdBounds,
    TonalParams,
    default_stages,
)
from .surface import ProcessingSurface

__all__ = [
    "CropParams",
    "CropRegion",
    "CropSelector",
    "EdgeAlgorithm",
    "EdgeParams",
    "FileDownloader",
    "LoadStatus",
    "OutputAdapter",
    "PipelineEvent",
    "PipelineEventKind",
    "PipelineGraph",
    "ProcessingSurface",
    "SOURCE_STAGE",
    "SelectorState",
    "SketchParams",
    "SourceLoader",
    "SourceReference",
    "Stage",
    "StageFailure",
    "StageKind",
    "StageOutput",
    "ThresholdBounds",
    "TonalParams",
    "default_stages",
]
