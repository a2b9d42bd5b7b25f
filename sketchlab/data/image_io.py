"""Decoded image buffers and the codecs used at the pipeline boundary.

Sources arrive as encoded file content (PNG, JPEG, ...) and are decoded once
through :mod:`Pillow` into an :class:`ImageAsset`: a read-only, row-major
``(height, width, 4)`` RGBA ``uint8`` array. Stage outputs leave the
pipeline as PNG payloads wrapped in a ``data:`` URL so that display,
download and the gallery collaborator can all consume the same string.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

from sketchlab.core.errors import DecodeFailure


DATA_URL_PREFIX = "data:image/png;base64,"
CHANNELS = 4


def source_id_for(content: bytes) -> str:
    """Return the identity of an encoded source: the sha256 of its bytes."""

    return hashlib.sha256(content).hexdigest()


@dataclass(eq=False)
class ImageAsset:
    """Immutable decoded pixel buffer.

    ``source_id`` names the originating source, so two assets decoded from the
    same file content compare as the same source even though they are
    distinct buffers. ``label`` records which stage produced a derived asset.
    """

    pixels: np.ndarray
    source_id: str
    label: str = "source"
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        array = np.asarray(self.pixels)
        if array.ndim != 3 or array.shape[2] != CHANNELS:
            raise ValueError(f"Expected an (H, W, 4) RGBA array, got shape {array.shape}")
        if array.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {array.dtype}")
        array = np.array(array, copy=True, order="C")
        array.setflags(write=False)
        self.pixels = array

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def shape(self) -> tuple[int, int, int]:
        return (self.height, self.width, CHANNELS)

    def to_bytes(self) -> bytes:
        """Return the row-major RGBA byte sequence."""

        return self.pixels.tobytes()

    @classmethod
    def from_bytes(
        cls,
        width: int,
        height: int,
        data: bytes,
        *,
        source_id: Optional[str] = None,
        label: str = "source",
    ) -> "ImageAsset":
        expected = int(width) * int(height) * CHANNELS
        if len(data) != expected:
            raise ValueError(
                f"RGBA buffer for {width}x{height} must hold {expected} bytes, got {len(data)}"
            )
        array = np.frombuffer(data, dtype=np.uint8).reshape(int(height), int(width), CHANNELS)
        return cls(array, source_id or source_id_for(bytes(data)), label)

    def derive(self, pixels: np.ndarray, label: str) -> "ImageAsset":
        """Return a new asset produced from this one by a pipeline stage."""

        return ImageAsset(pixels, self.source_id, label)

    def same_source(self, other: Optional["ImageAsset"]) -> bool:
        return other is not None and other.source_id == self.source_id

    def __repr__(self) -> str:
        return (
            f"ImageAsset({self.width}x{self.height}, label={self.label!r}, "
            f"source_id={self.source_id[:12]!r})"
        )


def decode_image_bytes(content: bytes, *, source_id: Optional[str] = None) -> ImageAsset:
    """Decode encoded image ``content`` into an RGBA :class:`ImageAsset`."""

    identifier = source_id or source_id_for(content or b"")
    if not content:
        raise DecodeFailure("Source is empty", source_id=identifier)
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()
            metadata = {"format": img.format, "mode": img.mode, "size": img.size}
            rgba = img.convert("RGBA")
            array = np.array(rgba, dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeFailure(f"Could not decode source: {exc}", source_id=identifier) from exc
    if array.size == 0:
        raise DecodeFailure("Decoded source has no pixels", source_id=identifier)
    return ImageAsset(array, identifier, "source", metadata)


def load_image(path: Path | str) -> ImageAsset:
    """Read ``path`` and decode it."""

    resolved = Path(path)
    try:
        content = resolved.read_bytes()
    except OSError as exc:
        raise DecodeFailure(f"Could not read {resolved}: {exc}") from exc
    asset = decode_image_bytes(content)
    asset.metadata["filename"] = resolved.name
    return asset


def encode_png(asset: ImageAsset) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(np.array(asset.pixels)).save(buffer, format="PNG")
    return buffer.getvalue()


def encode_data_url(asset: ImageAsset) -> str:
    """Encode ``asset`` as a portable ``data:image/png;base64`` string."""

    return DATA_URL_PREFIX + base64.b64encode(encode_png(asset)).decode("ascii")


def decode_data_url(value: str) -> bytes:
    """Return the PNG bytes carried by a value from :func:`encode_data_url`."""

    if not value:
        raise ValueError("Encoded image is empty")
    payload = value.split(",", 1)[1] if value.startswith("data:") else value
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Encoded image is not valid base64: {exc}") from exc


__all__ = [
    "DATA_URL_PREFIX",
    "ImageAsset",
    "decode_data_url",
    "decode_image_bytes",
    "encode_data_url",
    "encode_png",
    "load_image",
    "source_id_for",
]
