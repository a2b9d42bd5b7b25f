"""Stage definitions, their parameter sets and the processors computing them.

A :class:`Stage` only describes a step (name, kind, parameters and the name
of its upstream stage). The computation lives in a processor selected by the
stage kind so that :class:`~sketchlab.processing.pipeline_graph.PipelineGraph`
can own every cached output.
"""

from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Hashable, List, Mapping, Optional, Protocol, Union

import numpy as np

from sketchlab.data.image_io import ImageAsset

from . import filters
from .crop import CropRegion
from .filters import EdgeAlgorithm


LOGGER = logging.getLogger(__name__)


class StageKind(str, Enum):
    CROP = "crop"
    TONAL_ADJUST = "tonal_adjust"
    EDGE_DETECT = "edge_detect"
    SKETCH = "sketch"


@dataclass(frozen=True)
class CropParams:
    region: Optional[CropRegion] = None


@dataclass(frozen=True)
class TonalParams:
    brightness: float = 0.0
    contrast: float = 0.0


@dataclass(frozen=True)
class EdgeParams:
    threshold: float = 50.0
    algorithm: EdgeAlgorithm = EdgeAlgorithm.GRADIENT_DIFF


@dataclass(frozen=True)
class SketchParams:
    brightness: float = 0.0
    contrast: float = 0.0
    threshold: float = filters.SKETCH_THRESHOLD


StageParams = Union[CropParams, TonalParams, EdgeParams, SketchParams]


@dataclass(frozen=True)
class ThresholdBounds:
    """Inclusive range an edge threshold may take for one algorithm."""

    minimum: float
    maximum: float

    def __post_init__(self) -> None:
        if self.minimum > self.maximum:
            raise ValueError(f"Threshold minimum {self.minimum} exceeds maximum {self.maximum}")

    def __contains__(self, value: object) -> bool:
        return isinstance(value, numbers.Real) and self.minimum <= value <= self.maximum

    def clamp(self, value: float) -> float:
        return max(self.minimum, min(self.maximum, float(value)))


DEFAULT_EDGE_BOUNDS: Dict[EdgeAlgorithm, ThresholdBounds] = {
    EdgeAlgorithm.GRADIENT_DIFF: ThresholdBounds(0, 200),
    EdgeAlgorithm.SOBEL: ThresholdBounds(0, 1500),
}

SOURCE_FILENAME = "original-image.png"
KIND_FILENAMES: Dict[StageKind, str] = {
    StageKind.CROP: "cropped-image.png",
    StageKind.TONAL_ADJUST: "adjusted-image.png",
    StageKind.SKETCH: "sketched-image.png",
    StageKind.EDGE_DETECT: "edges-image.png",
}


@dataclass
class Stage:
    """One named step in the transform chain.

    ``upstream`` names the stage whose output feeds this one; ``None`` means
    the stage reads the source image directly.
    """

    name: str
    kind: StageKind
    params: StageParams
    upstream: Optional[str] = None
    filename: str = ""

    def __post_init__(self) -> None:
        self.kind = StageKind(self.kind)
        if not self.filename:
            self.filename = KIND_FILENAMES[self.kind]


def _check_percentage(label: str, value: float) -> None:
    if not isinstance(value, numbers.Real) or not -100 <= value <= 100:
        raise ValueError(f"{label} must lie in [-100, 100], got {value!r}")


class StageProcessor(Protocol):
    def validate(self, params: Any) -> None: ...

    def compute(
        self,
        image: ImageAsset,
        params: Any,
        scratch: np.ndarray,
        memo: Dict[str, Any],
        token: Hashable,
    ) -> Optional[np.ndarray]: ...


class CropProcessor:
    def validate(self, params: Any) -> None:
        if not isinstance(params, CropParams):
            raise TypeError(f"Crop stage expects CropParams, got {type(params).__name__}")
        if params.region is not None and not isinstance(params.region, CropRegion):
            raise TypeError("Crop region must be a CropRegion")

    def compute(self, image, params, scratch, memo, token):
        if params.region is None:
            return None
        region = params.region.resolve(image.width, image.height)
        return filters.crop_pixels(image.pixels, region)


class TonalProcessor:
    def validate(self, params: Any) -> None:
        if not isinstance(params, TonalParams):
            raise TypeError(f"Tonal stage expects TonalParams, got {type(params).__name__}")
        _check_percentage("brightness", params.brightness)
        _check_percentage("contrast", params.contrast)

    def compute(self, image, params, scratch, memo, token):
        return filters.adjust_brightness_contrast(
            image.pixels, params.brightness, params.contrast, out=scratch
        )


class SketchProcessor:
    def validate(self, params: Any) -> None:
        if not isinstance(params, SketchParams):
            raise TypeError(f"Sketch stage expects SketchParams, got {type(params).__name__}")
        _check_percentage("brightness", params.brightness)
        _check_percentage("contrast", params.contrast)
        if not 0 <= params.threshold <= 255:
            raise ValueError(f"Sketch threshold must lie in [0, 255], got {params.threshold!r}")

    def compute(self, image, params, scratch, memo, token):
        return filters.sketch(
            image.pixels, params.brightness, params.contrast, params.threshold, out=scratch
        )


class EdgeProcessor:
    """Edge detection that keeps the grayscale buffer of its last input.

    The grayscale pass is repeated only when the input token changes, so a
    threshold or algorithm change reuses it.
    """

    def __init__(self, bounds: Optional[Mapping[EdgeAlgorithm, ThresholdBounds]] = None) -> None:
        self.bounds: Dict[EdgeAlgorithm, ThresholdBounds] = dict(DEFAULT_EDGE_BOUNDS)
        if bounds:
            self.bounds.update({EdgeAlgorithm(key): value for key, value in bounds.items()})
        self.grayscale_passes = 0

    def validate(self, params: Any) -> None:
        if not isinstance(params, EdgeParams):
            raise TypeError(f"Edge stage expects EdgeParams, got {type(params).__name__}")
        algorithm = EdgeAlgorithm(params.algorithm)
        bounds = self.bounds[algorithm]
        if params.threshold not in bounds:
            raise ValueError(
                f"{algorithm.value} threshold must lie in "
                f"[{bounds.minimum}, {bounds.maximum}], got {params.threshold!r}"
            )

    def compute(self, image, params, scratch, memo, token):
        gray = memo.get("gray") if memo.get("gray_token") == token else None
        if gray is None:
            gray = filters.quantized_luminosity(image.pixels)
            memo["gray"] = gray
            memo["gray_token"] = token
            self.grayscale_passes += 1
        else:
            LOGGER.debug("Reusing grayscale buffer", extra={"component": "EdgeProcessor"})
        return filters.detect_edges(
            image.pixels, params.threshold, params.algorithm, gray=gray, out=scratch
        )


def build_processors(
    edge_bounds: Optional[Mapping[EdgeAlgorithm, ThresholdBounds]] = None,
) -> Dict[StageKind, StageProcessor]:
    return {
        StageKind.CROP: CropProcessor(),
        StageKind.TONAL_ADJUST: TonalProcessor(),
        StageKind.EDGE_DETECT: EdgeProcessor(edge_bounds),
        StageKind.SKETCH: SketchProcessor(),
    }


def default_stages(*, edge_threshold: float = 50.0, sketch_threshold: float = filters.SKETCH_THRESHOLD) -> List[Stage]:
    """Source -> crop -> adjust -> {sketch, edges}."""

    return [
        Stage("crop", StageKind.CROP, CropParams(), upstream=None),
        Stage("adjust", StageKind.TONAL_ADJUST, TonalParams(), upstream="crop"),
        Stage("sketch", StageKind.SKETCH, SketchParams(threshold=sketch_threshold), upstream="adjust"),
        Stage("edges", StageKind.EDGE_DETECT, EdgeParams(threshold=edge_threshold), upstream="adjust"),
    ]


__all__ = [
    "CropParams",
    "CropProcessor",
    "DEFAULT_EDGE_BOUNDS",
    "EdgeAlgorithm",
    "EdgeParams",
    "EdgeProcessor",
    "KIND_FILENAMES",
    "SOURCE_FILENAME",
    "SketchParams",
    "SketchProcessor",
    "Stage",
    "StageKind",
    "StageParams",
    "StageProcessor",
    "ThresholdBounds",
    "TonalParams",
    "TonalProcessor",
    "build_processors",
    "default_stages",
]
