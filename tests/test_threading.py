from __future__ import annotations

import threading

import pytest

from sketchlab.core.threading import ThreadController


def test_submit_runs_in_background_and_invokes_callback() -> None:
    controller = ThreadController(max_workers=1)
    finished = threading.Event()
    try:
        future = controller.submit(lambda a, b: a + b, 2, 3, callback=lambda _f: finished.set())
        assert future.result(timeout=5) == 5
        assert finished.wait(5)
    finally:
        controller.shutdown()


def test_submit_after_shutdown_is_rejected() -> None:
    controller = ThreadController()
    controller.shutdown()
    controller.shutdown()
    with pytest.raises(RuntimeError):
        controller.submit(lambda: None)
