from __future__ import annotations

import threading
from typing import Dict, List

import pytest

from conftest import make_rgba
from sketchlab.core.errors import DecodeFailure
from sketchlab.core.threading import ThreadController
from sketchlab.data.image_io import ImageAsset
from sketchlab.processing.source_loader import LoadStatus, SourceLoader, SourceReference


class GatedDecoder:
    """Decoder that blocks until the test releases the given content."""

    def __init__(self) -> None:
        self.gates: Dict[bytes, threading.Event] = {}
        self.calls: List[bytes] = []

    def gate(self, content: bytes) -> threading.Event:
        return self.gates.setdefault(content, threading.Event())

    def __call__(self, content: bytes, *, source_id: str | None = None) -> ImageAsset:
        self.calls.append(content)
        assert self.gate(content).wait(5)
        if content.startswith(b"bad"):
            raise DecodeFailure("corrupt", source_id=source_id)
        return ImageAsset(make_rgba(2, 3), source_id or "unknown")


@pytest.fixture
def controller():
    controller = ThreadController(max_workers=2)
    yield controller
    controller.shutdown()


def test_reference_key_is_content_hash() -> None:
    assert SourceReference(b"abc").key == SourceReference(b"abc", "other.png").key
    assert SourceReference(b"abc").key != SourceReference(b"abd").key


def test_concurrent_requests_share_one_decode(controller) -> None:
    decoder = GatedDecoder()
    loaded: List[ImageAsset] = []
    loader = SourceLoader(controller, decoder=decoder, on_loaded=loaded.append)
    reference = SourceReference(b"photo", "photo.png")

    first = loader.select(reference)
    second = loader.request(reference)
    assert first is second
    assert loader.status is LoadStatus.LOADING

    decoder.gate(b"photo").set()
    asset = first.result(timeout=5)

    assert loader.decode_count == 1
    assert loader.status is LoadStatus.LOADED
    assert loaded == [asset]
    assert asset.source_id == reference.key
    assert asset.metadata["filename"] == "photo.png"


def test_completion_of_superseded_source_is_ignored(controller) -> None:
    decoder = GatedDecoder()
    loaded: List[ImageAsset] = []
    loader = SourceLoader(controller, decoder=decoder, on_loaded=loaded.append)
    old = SourceReference(b"old")
    new = SourceReference(b"new")

    old_future = loader.select(old)
    new_future = loader.select(new)
    decoder.gate(b"new").set()
    new_asset = new_future.result(timeout=5)
    decoder.gate(b"old").set()
    old_future.result(timeout=5)

    assert loaded == [new_asset]
    assert loader.current_key == new.key
    assert loader.status is LoadStatus.LOADED
    assert old.key in loader.cached_keys()


def test_decode_failure_is_reported(controller) -> None:
    decoder = GatedDecoder()
    failures: List[DecodeFailure] = []
    loader = SourceLoader(controller, decoder=decoder, on_failed=failures.append)
    decoder.gate(b"bad-bytes").set()

    future = loader.select(SourceReference(b"bad-bytes"))
    with pytest.raises(DecodeFailure):
        future.result(timeout=5)

    assert loader.status is LoadStatus.FAILED
    assert failures == [loader.last_error]
    assert loader.cached_keys() == []


def test_unexpected_decoder_errors_become_decode_failures(controller) -> None:
    def decoder(content: bytes, *, source_id: str | None = None) -> ImageAsset:
        raise ValueError("unsupported")

    loader = SourceLoader(controller, decoder=decoder)
    future = loader.select(SourceReference(b"x"))
    with pytest.raises(DecodeFailure):
        future.result(timeout=5)
    assert isinstance(loader.last_error, DecodeFailure)


def test_real_decoder_rejects_garbage(controller) -> None:
    loader = SourceLoader(controller)
    with pytest.raises(DecodeFailure):
        loader.select(SourceReference(b"definitely not an image")).result(timeout=5)


def test_reselecting_a_decoded_source_uses_the_cache(controller, png_bytes) -> None:
    loaded: List[ImageAsset] = []
    loader = SourceLoader(controller, on_loaded=loaded.append)
    reference = SourceReference(png_bytes)

    first = loader.select(reference).result(timeout=5)
    again = loader.select(reference)

    assert again.done()
    assert again.result() is first
    assert loader.decode_count == 1
    assert loaded == [first, first]


def test_cache_evicts_least_recently_used(controller) -> None:
    decoder = GatedDecoder()
    loader = SourceLoader(controller, decoder=decoder, cache_entries=1)
    for content in (b"one", b"two"):
        decoder.gate(content).set()
        loader.select(SourceReference(content)).result(timeout=5)
    assert loader.cached_keys() == [SourceReference(b"two").key]


def test_missing_file_raises_decode_failure(tmp_path) -> None:
    with pytest.raises(DecodeFailure):
        SourceReference.from_path(tmp_path / "missing.png")


def test_reject_abandons_the_current_selection(controller) -> None:
    decoder = GatedDecoder()
    failures: List[DecodeFailure] = []
    loader = SourceLoader(controller, decoder=decoder, on_failed=failures.append)
    pending = loader.select(SourceReference(b"slow"))

    future = loader.reject(DecodeFailure("unreadable"))
    with pytest.raises(DecodeFailure):
        future.result(timeout=5)
    assert loader.status is LoadStatus.FAILED
    assert loader.current_key is None
    assert loader.last_error is failures[0]

    decoder.gate(b"slow").set()
    pending.result(timeout=5)
    assert loader.status is LoadStatus.FAILED
