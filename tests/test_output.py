from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import numpy as np
import pytest

from sketchlab.core.errors import PersistenceFailure
from sketchlab.data.gallery import JsonGalleryStore
from sketchlab.data.image_io import decode_image_bytes
from sketchlab.processing.crop import CropRegion
from sketchlab.processing.output import FileDownloader, OutputAdapter
from sketchlab.processing.pipeline_graph import PipelineGraph
from sketchlab.processing.stages import CropParams


class RecordingDownloader:
    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []

    def __call__(self, encoded: str, filename: str) -> None:
        self.calls.append((encoded, filename))


class ExplodingGallery:
    def save(self, title: str, encoded_image: str):
        raise OSError("disk full")


@pytest.fixture
def graph(timer_factory, gradient_asset) -> PipelineGraph:
    graph = PipelineGraph(timer_factory=timer_factory)
    graph.set_source(gradient_asset)
    yield graph
    graph.close()


def test_suggested_filenames(graph) -> None:
    adapter = OutputAdapter(graph)
    assert adapter.suggested_filename("source") == "original-image.png"
    assert adapter.suggested_filename("crop") == "cropped-image.png"
    assert adapter.suggested_filename("adjust") == "adjusted-image.png"
    assert adapter.suggested_filename("sketch") == "sketched-image.png"
    assert adapter.suggested_filename("edges") == "edges-image.png"


def test_display_falls_back_toward_source(graph) -> None:
    adapter = OutputAdapter(graph)
    assert adapter.display("crop") is None
    assert adapter.display("crop", fallback=True) == adapter.display("source")

    graph.set_parameters("crop", CropParams(CropRegion(0, 0, 4, 4)))
    assert adapter.display("crop", fallback=True) == graph.get_output("crop").encoded


def test_download_hands_encoded_image_and_filename(graph) -> None:
    downloader = RecordingDownloader()
    adapter = OutputAdapter(graph, downloader=downloader)

    assert adapter.download("edges")
    assert not adapter.download("crop")
    assert adapter.download("sketch", "mine.png")

    assert [name for _, name in downloader.calls] == ["edges-image.png", "mine.png"]
    assert downloader.calls[0][0] == graph.get_output("edges").encoded


def test_file_downloader_writes_png(graph, tmp_path: Path) -> None:
    adapter = OutputAdapter(graph, downloader=FileDownloader(tmp_path / "out"))
    assert adapter.download("adjust")
    written = decode_image_bytes((tmp_path / "out" / "adjusted-image.png").read_bytes())
    np.testing.assert_array_equal(written.pixels, graph.get_output("adjust").asset.pixels)


def test_save_hands_latest_output_to_gallery(graph, tmp_path: Path) -> None:
    store = JsonGalleryStore(tmp_path / "gallery.json")
    adapter = OutputAdapter(graph, gallery=store)
    entry = adapter.save("edges", "Edges")
    assert entry.encoded_image == graph.get_output("edges").encoded
    assert store.list() == [entry]


def test_saving_an_absent_output_fails(graph, tmp_path: Path) -> None:
    adapter = OutputAdapter(graph, gallery=JsonGalleryStore(tmp_path / "gallery.json"))
    with pytest.raises(PersistenceFailure):
        adapter.save("crop", "Nothing")


def test_collaborator_errors_become_persistence_failures(graph) -> None:
    adapter = OutputAdapter(graph, gallery=ExplodingGallery())
    with pytest.raises(PersistenceFailure) as excinfo:
        adapter.save("adjust", "Adjusted")
    assert "disk full" in str(excinfo.value)
    assert graph.get_output("adjust") is not None


def test_save_without_gallery_fails(graph) -> None:
    with pytest.raises(PersistenceFailure):
        OutputAdapter(graph).save("adjust", "x")
