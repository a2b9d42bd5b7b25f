"""Crop rectangles and the interactive selector that produces them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from sketchlab.core.errors import InvalidRegion


LOGGER = logging.getLogger(__name__)


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


@dataclass(frozen=True)
class CropRegion:
    """Rectangle in source-image pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def full(cls, image_width: int, image_height: int) -> "CropRegion":
        return cls(0, 0, int(image_width), int(image_height))

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def is_full(self, image_width: int, image_height: int) -> bool:
        return self == CropRegion.full(image_width, image_height)

    def validate(self, image_width: int, image_height: int) -> None:
        """Raise :class:`InvalidRegion` unless the rectangle is a usable crop."""

        if self.is_degenerate:
            raise InvalidRegion(f"Crop region {self.as_box()} has no area")
        if (
            self.x < 0
            or self.y < 0
            or self.x + self.width > image_width
            or self.y + self.height > image_height
        ):
            raise InvalidRegion(
                f"Crop region {self.as_box()} exceeds image bounds {image_width}x{image_height}"
            )

    def resolve(self, image_width: int, image_height: int) -> "CropRegion":
        """Clip to the image; a rectangle left without area becomes the full image."""

        left = _clamp(self.x, 0, image_width)
        top = _clamp(self.y, 0, image_height)
        right = _clamp(self.x + max(self.width, 0), 0, image_width)
        bottom = _clamp(self.y + max(self.height, 0), 0, image_height)
        if right - left <= 0 or bottom - top <= 0:
            LOGGER.debug(
                "Degenerate crop corrected to full image",
                extra={"component": "CropRegion", "region": self.as_box()},
            )
            return CropRegion.full(image_width, image_height)
        return CropRegion(left, top, right - left, bottom - top)

    def as_box(self) -> Tuple[int, int, int, int]:
        """Return ``(left, top, right, bottom)``."""

        return (self.x, self.y, self.x + self.width, self.y + self.height)


class SelectorState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTED = "committed"


class CropSelector:
    """Pointer driven rectangle selection over a displayed image.

    Pointer positions arrive in display-surface coordinates and are mapped to
    image pixels through the display/image scale ratio. A drag is anchored on
    :meth:`pointer_down`, follows :meth:`pointer_move` and is frozen by
    :meth:`pointer_up` (or :meth:`pointer_leave`). A committed rectangle
    without area is replaced by the full image bounds.
    """

    def __init__(
        self,
        image_width: int,
        image_height: int,
        display_width: Optional[float] = None,
        display_height: Optional[float] = None,
    ) -> None:
        self._image_width = 0
        self._image_height = 0
        self._display_width = 0.0
        self._display_height = 0.0
        self._state = SelectorState.IDLE
        self._anchor: Optional[Tuple[int, int]] = None
        self._pointer: Optional[Tuple[int, int]] = None
        self._committed: Optional[CropRegion] = None
        self.reset(image_width, image_height, display_width, display_height)

    @property
    def state(self) -> SelectorState:
        return self._state

    @property
    def image_size(self) -> Tuple[int, int]:
        return (self._image_width, self._image_height)

    @property
    def committed_region(self) -> Optional[CropRegion]:
        return self._committed

    @property
    def region(self) -> CropRegion:
        """The rectangle currently shown: live while dragging, else committed."""

        if self._state is SelectorState.DRAGGING:
            return self._live_rectangle()
        if self._committed is not None:
            return self._committed
        return CropRegion.full(self._image_width, self._image_height)

    def to_image_coordinates(self, x: float, y: float) -> Tuple[int, int]:
        scale_x = self._image_width / self._display_width
        scale_y = self._image_height / self._display_height
        image_x = int(round(float(x) * scale_x))
        image_y = int(round(float(y) * scale_y))
        return (
            _clamp(image_x, 0, self._image_width),
            _clamp(image_y, 0, self._image_height),
        )

    def pointer_down(self, x: float, y: float) -> CropRegion:
        self._anchor = self.to_image_coordinates(x, y)
        self._pointer = self._anchor
        self._state = SelectorState.DRAGGING
        LOGGER.debug(
            "Crop drag started", extra={"component": "CropSelector", "anchor": self._anchor}
        )
        return self._live_rectangle()

    def pointer_move(self, x: float, y: float) -> Optional[CropRegion]:
        if self._state is not SelectorState.DRAGGING:
            return None
        self._pointer = self.to_image_coordinates(x, y)
        return self._live_rectangle()

    def pointer_up(self, x: Optional[float] = None, y: Optional[float] = None) -> Optional[CropRegion]:
        if self._state is not SelectorState.DRAGGING:
            return self._committed
        if x is not None and y is not None:
            self._pointer = self.to_image_coordinates(x, y)
        rectangle = self._live_rectangle()
        if rectangle.is_degenerate:
            rectangle = CropRegion.full(self._image_width, self._image_height)
        self._committed = rectangle
        self._state = SelectorState.COMMITTED
        self._anchor = None
        self._pointer = None
        LOGGER.debug(
            "Crop committed", extra={"component": "CropSelector", "region": rectangle.as_box()}
        )
        return rectangle

    def pointer_leave(self) -> Optional[CropRegion]:
        """Leaving the surface mid-drag commits at the last known pointer."""

        if self._state is not SelectorState.DRAGGING:
            return None
        return self.pointer_up()

    def resize_display(self, display_width: float, display_height: float) -> None:
        if display_width <= 0 or display_height <= 0:
            raise ValueError("Display size must be positive")
        self._display_width = float(display_width)
        self._display_height = float(display_height)

    def reset(
        self,
        image_width: Optional[int] = None,
        image_height: Optional[int] = None,
        display_width: Optional[float] = None,
        display_height: Optional[float] = None,
    ) -> None:
        """Return to idle, optionally for a new image size."""

        if image_width is not None and image_height is not None:
            if image_width <= 0 or image_height <= 0:
                raise ValueError("Image size must be positive")
            self._image_width = int(image_width)
            self._image_height = int(image_height)
            self.resize_display(
                display_width if display_width is not None else image_width,
                display_height if display_height is not None else image_height,
            )
        elif display_width is not None and display_height is not None:
            self.resize_display(display_width, display_height)
        self._state = SelectorState.IDLE
        self._anchor = None
        self._pointer = None
        self._committed = None

    def _live_rectangle(self) -> CropRegion:
        if self._anchor is None or self._pointer is None:
            return CropRegion.full(self._image_width, self._image_height)
        (ax, ay), (px, py) = self._anchor, self._pointer
        return CropRegion(min(ax, px), min(ay, py), abs(px - ax), abs(py - ay))


__all__ = ["CropRegion", "CropSelector", "SelectorState"]
