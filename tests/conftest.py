from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List

import numpy as np
import pytest


# Ensure the project root is on ``sys.path`` so tests can import ``sketchlab``
# without requiring the package to be installed in the environment.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from sketchlab.data.image_io import ImageAsset, encode_png  # noqa: E402


class FakeTimer:
    """Timer stand-in that only fires when a test tells it to."""

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


class FakeTimerFactory:
    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> List[FakeTimer]:
        return [timer for timer in self.timers if timer.started and not timer.cancelled]

    def fire_all(self) -> int:
        live = self.live
        for timer in live:
            timer.fire()
        return len(live)


def make_rgba(height: int, width: int, rgb=(128, 128, 128), alpha: int = 255) -> np.ndarray:
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[..., :3] = rgb
    pixels[..., 3] = alpha
    return pixels


def half_black_half_white(size: int = 4) -> np.ndarray:
    pixels = make_rgba(size, size, rgb=(0, 0, 0))
    pixels[:, size // 2 :, :3] = 255
    return pixels


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def gradient_image() -> np.ndarray:
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(12, 16, 4), dtype=np.uint8)


@pytest.fixture
def gradient_asset(gradient_image: np.ndarray) -> ImageAsset:
    return ImageAsset(gradient_image, "gradient-source")


@pytest.fixture
def png_bytes(gradient_image: np.ndarray) -> bytes:
    return encode_png(ImageAsset(gradient_image, "png-fixture"))
