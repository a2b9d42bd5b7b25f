from __future__ import annotations

import pytest

from sketchlab.core.errors import InvalidRegion
from sketchlab.processing.crop import CropRegion, CropSelector, SelectorState


def test_zero_area_drag_commits_full_image() -> None:
    selector = CropSelector(40, 30)
    selector.pointer_down(0, 0)
    committed = selector.pointer_up(0, 0)
    assert committed == CropRegion(0, 0, 40, 30)
    assert selector.state is SelectorState.COMMITTED


def test_zero_width_drag_commits_full_image() -> None:
    selector = CropSelector(40, 30)
    selector.pointer_down(5, 5)
    selector.pointer_move(5, 20)
    assert selector.pointer_up() == CropRegion.full(40, 30)


def test_drag_produces_normalised_rectangle() -> None:
    selector = CropSelector(100, 80)
    selector.pointer_down(60, 50)
    live = selector.pointer_move(20, 10)
    assert live == CropRegion(20, 10, 40, 40)
    assert selector.state is SelectorState.DRAGGING
    assert selector.pointer_up(10, 70) == CropRegion(10, 50, 50, 20)
    assert selector.committed_region == CropRegion(10, 50, 50, 20)


def test_display_coordinates_are_scaled_and_clamped() -> None:
    selector = CropSelector(200, 100, display_width=100, display_height=50)
    assert selector.to_image_coordinates(10, 10) == (20, 20)
    assert selector.to_image_coordinates(-5, 500) == (0, 100)


def test_pointer_leave_commits_while_dragging() -> None:
    selector = CropSelector(50, 50)
    assert selector.pointer_leave() is None
    selector.pointer_down(10, 10)
    selector.pointer_move(30, 40)
    assert selector.pointer_leave() == CropRegion(10, 10, 20, 30)
    assert selector.state is SelectorState.COMMITTED


def test_move_without_drag_is_ignored() -> None:
    selector = CropSelector(50, 50)
    assert selector.pointer_move(10, 10) is None
    assert selector.state is SelectorState.IDLE
    assert selector.region == CropRegion.full(50, 50)


def test_reset_returns_to_idle_with_new_bounds() -> None:
    selector = CropSelector(50, 50)
    selector.pointer_down(1, 1)
    selector.pointer_up(20, 20)
    selector.reset(10, 8)
    assert selector.state is SelectorState.IDLE
    assert selector.committed_region is None
    assert selector.region == CropRegion(0, 0, 10, 8)


def test_resolve_clips_and_corrects_degenerate_regions() -> None:
    assert CropRegion(5, 5, 100, 100).resolve(20, 10) == CropRegion(5, 5, 15, 5)
    assert CropRegion(3, 3, 0, 4).resolve(20, 10) == CropRegion.full(20, 10)
    assert CropRegion(30, 0, 5, 5).resolve(20, 10) == CropRegion.full(20, 10)


def test_validate_rejects_invalid_regions() -> None:
    with pytest.raises(InvalidRegion):
        CropRegion(0, 0, 0, 5).validate(10, 10)
    with pytest.raises(InvalidRegion):
        CropRegion(-1, 0, 5, 5).validate(10, 10)
    CropRegion(0, 0, 10, 10).validate(10, 10)


def test_invalid_sizes_are_rejected() -> None:
    with pytest.raises(ValueError):
        CropSelector(0, 10)
    selector = CropSelector(10, 10)
    with pytest.raises(ValueError):
        selector.resize_display(0, 5)
