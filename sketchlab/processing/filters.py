"""Stateless pixel filters over ``(H, W, 4)`` RGBA ``uint8`` arrays.

Every filter leaves the alpha channel untouched and returns a new array
unless ``out`` is given, in which case the result is written into ``out``
(which may alias the input) and ``out`` is returned. Channel values are
rounded half-to-even and clamped into ``0..255`` when converted back to
bytes.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

import cv2
import numpy as np

from .crop import CropRegion


LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)
SKETCH_THRESHOLD = 150
BLACK = 0
WHITE = 255


class EdgeAlgorithm(str, Enum):
    """Gradient estimators available to edge detection."""

    GRADIENT_DIFF = "gradient_diff"
    SOBEL = "sobel"


def _check_rgba(pixels: np.ndarray) -> None:
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) RGBA array, got shape {pixels.shape}")
    if pixels.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")


def _target(pixels: np.ndarray, out: Optional[np.ndarray]) -> np.ndarray:
    if out is None:
        return np.empty_like(pixels)
    if out.shape != pixels.shape or out.dtype != np.uint8:
        raise ValueError(
            f"Output buffer {out.shape}/{out.dtype} does not match input {pixels.shape}"
        )
    return out


def to_bytes(values: np.ndarray) -> np.ndarray:
    """Round and clamp floating point channel values into ``uint8``."""

    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def adjust_brightness_contrast(
    pixels: np.ndarray,
    brightness: float = 0.0,
    contrast: float = 0.0,
    *,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Scale RGB by ``1 + brightness/100`` then stretch around 128.

    ``brightness`` and ``contrast`` are percentages in ``[-100, 100]``;
    ``(0, 0)`` is the identity.
    """

    _check_rgba(pixels)
    rgb = pixels[..., :3].astype(np.float64)
    alpha = pixels[..., 3].copy()
    brightness_factor = 1.0 + float(brightness) / 100.0
    contrast_factor = (float(contrast) + 100.0) / 100.0
    adjusted = (rgb * brightness_factor - 128.0) * contrast_factor + 128.0
    target = _target(pixels, out)
    target[..., :3] = to_bytes(adjusted)
    target[..., 3] = alpha
    return target


def luminosity(pixels: np.ndarray) -> np.ndarray:
    """Return the weighted grayscale value of every pixel as ``float64``."""

    _check_rgba(pixels)
    red = pixels[..., 0].astype(np.float64)
    green = pixels[..., 1].astype(np.float64)
    blue = pixels[..., 2].astype(np.float64)
    return LUMA_WEIGHTS[0] * red + LUMA_WEIGHTS[1] * green + LUMA_WEIGHTS[2] * blue


def quantized_luminosity(pixels: np.ndarray) -> np.ndarray:
    """Grayscale stored as bytes, the buffer edge detection works on."""

    return to_bytes(luminosity(pixels))


def _fill_gray(target: np.ndarray, value: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    target[..., 0] = value
    target[..., 1] = value
    target[..., 2] = value
    target[..., 3] = alpha
    return target


def posterize(
    pixels: np.ndarray,
    threshold: float = SKETCH_THRESHOLD,
    *,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Map pixels brighter than ``threshold`` to white and the rest to black."""

    gray = luminosity(pixels)
    alpha = pixels[..., 3].copy()
    value = np.where(gray > threshold, WHITE, BLACK).astype(np.uint8)
    return _fill_gray(_target(pixels, out), value, alpha)


def sketch(
    pixels: np.ndarray,
    brightness: float = 0.0,
    contrast: float = 0.0,
    threshold: float = SKETCH_THRESHOLD,
    *,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Tonal pre-pass followed by :func:`posterize`."""

    source = pixels
    if brightness or contrast:
        source = adjust_brightness_contrast(pixels, brightness, contrast, out=out)
    return posterize(source, threshold, out=out)


def gradient_magnitude(gray: np.ndarray) -> np.ndarray:
    """Forward-difference gradient magnitude.

    Pixels on the last column/row reuse themselves as the missing neighbour,
    so their component along that axis is zero.
    """

    values = np.asarray(gray, dtype=np.float64)
    gx = np.zeros_like(values)
    gy = np.zeros_like(values)
    gx[:, :-1] = values[:, 1:] - values[:, :-1]
    gy[:-1, :] = values[1:, :] - values[:-1, :]
    return np.sqrt(gx * gx + gy * gy)


def sobel_magnitude(gray: np.ndarray) -> np.ndarray:
    """3x3 Sobel gradient magnitude; border values are meaningless."""

    values = np.asarray(gray, dtype=np.float64)
    height, width = values.shape[:2]
    if height < 3 or width < 3:
        return np.zeros_like(values)
    gx = cv2.Sobel(values, cv2.CV_64F, 1, 0, ksize=3)
    gy = cv2.Sobel(values, cv2.CV_64F, 0, 1, ksize=3)
    return np.sqrt(gx * gx + gy * gy)


def threshold_edges(
    magnitude: np.ndarray,
    threshold: float,
    alpha: np.ndarray,
    *,
    blank_border: bool = False,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Render ``magnitude > threshold`` as black on white."""

    edges = np.asarray(magnitude) > threshold
    if blank_border:
        edges[0, :] = False
        edges[-1, :] = False
        edges[:, 0] = False
        edges[:, -1] = False
    height, width = edges.shape
    if out is None:
        out = np.empty((height, width, 4), dtype=np.uint8)
    value = np.where(edges, BLACK, WHITE).astype(np.uint8)
    return _fill_gray(out, value, np.array(alpha, copy=True))


def detect_edges(
    pixels: np.ndarray,
    threshold: float,
    algorithm: EdgeAlgorithm | str = EdgeAlgorithm.GRADIENT_DIFF,
    *,
    gray: Optional[np.ndarray] = None,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Edge map of ``pixels``; pass ``gray`` to skip the grayscale pass."""

    _check_rgba(pixels)
    variant = EdgeAlgorithm(algorithm)
    if gray is None:
        gray = quantized_luminosity(pixels)
    elif gray.shape != pixels.shape[:2]:
        raise ValueError(f"Grayscale buffer {gray.shape} does not match image {pixels.shape[:2]}")
    if variant is EdgeAlgorithm.SOBEL:
        magnitude = sobel_magnitude(gray)
    else:
        magnitude = gradient_magnitude(gray)
    return threshold_edges(
        magnitude,
        threshold,
        pixels[..., 3],
        blank_border=variant is EdgeAlgorithm.SOBEL,
        out=_target(pixels, out),
    )


def crop_pixels(pixels: np.ndarray, region: CropRegion) -> np.ndarray:
    """Copy the rectangle ``region`` into a new ``height x width`` buffer."""

    _check_rgba(pixels)
    height, width = pixels.shape[:2]
    region.validate(width, height)
    return pixels[region.y : region.y + region.height, region.x : region.x + region.width].copy()


__all__ = [
    "BLACK",
    "EdgeAlgorithm",
    "LUMA_WEIGHTS",
    "SKETCH_THRESHOLD",
    "WHITE",
    "adjust_brightness_contrast",
    "crop_pixels",
    "detect_edges",
    "gradient_magnitude",
    "luminosity",
    "posterize",
    "quantized_luminosity",
    "sketch",
    "sobel_magnitude",
    "threshold_edges",
    "to_bytes",
]
