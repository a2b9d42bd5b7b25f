"""Hand stage outputs to display, download and the gallery collaborator."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from sketchlab.core.errors import PersistenceFailure
from sketchlab.data.gallery import GalleryEntry, GalleryStore
from sketchlab.data.image_io import decode_data_url, encode_data_url

from .pipeline_graph import PipelineGraph
from .stages import SOURCE_FILENAME


LOGGER = logging.getLogger(__name__)

SOURCE_STAGE = "source"

Downloader = Callable[[str, str], object]


class FileDownloader:
    """Save encoded images as files in ``directory``."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def __call__(self, encoded: str, filename: str) -> Path:
        target = self.directory / Path(filename).name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(decode_data_url(encoded))
        LOGGER.info("Image downloaded", extra={"component": "FileDownloader", "path": str(target)})
        return target


class OutputAdapter:
    """Expose the encoded output of any stage (or ``"source"``) to consumers."""

    def __init__(
        self,
        graph: PipelineGraph,
        *,
        downloader: Optional[Downloader] = None,
        gallery: Optional[GalleryStore] = None,
    ) -> None:
        self.graph = graph
        self.downloader = downloader
        self.gallery = gallery
        self._source_encoding: Optional[tuple[str, str]] = None

    def encoded(self, stage: str) -> Optional[str]:
        if stage == SOURCE_STAGE:
            return self._encode_source()
        output = self.graph.get_output(stage)
        return output.encoded if output is not None else None

    def display(self, stage: str, *, fallback: bool = False) -> Optional[str]:
        """Encoded image for ``stage``; with ``fallback`` walk toward the source."""

        encoded = self.encoded(stage)
        if encoded is not None or not fallback or stage == SOURCE_STAGE:
            return encoded
        for upstream in self.graph.upstream_chain(stage):
            encoded = self.encoded(upstream)
            if encoded is not None:
                return encoded
        return self._encode_source()

    def suggested_filename(self, stage: str) -> str:
        if stage == SOURCE_STAGE:
            return SOURCE_FILENAME
        return self.graph.get_stage(stage).filename

    def download(self, stage: str, filename: Optional[str] = None) -> bool:
        """Hand the stage output to the downloader; ``False`` if there is none."""

        if self.downloader is None:
            raise RuntimeError("No downloader configured")
        encoded = self.encoded(stage)
        if encoded is None:
            LOGGER.debug("Nothing to download", extra={"component": "OutputAdapter", "stage": stage})
            return False
        name = filename or self.suggested_filename(stage)
        self.downloader(encoded, name)
        LOGGER.info("Download requested", extra={"component": "OutputAdapter", "stage": stage, "file": name})
        return True

    def save(self, stage: str, title: str) -> GalleryEntry:
        """Save the latest output of ``stage`` to the gallery under ``title``."""

        if self.gallery is None:
            raise PersistenceFailure("save", "no gallery configured")
        encoded = self.encoded(stage) or ""
        try:
            entry = self.gallery.save(title, encoded)
        except PersistenceFailure:
            raise
        except Exception as exc:
            LOGGER.error(
                "Gallery rejected image",
                exc_info=exc,
                extra={"component": "OutputAdapter", "stage": stage},
            )
            raise PersistenceFailure("save", str(exc)) from exc
        LOGGER.info("Stage saved", extra={"component": "OutputAdapter", "stage": stage, "title": title})
        return entry

    def _encode_source(self) -> Optional[str]:
        source = self.graph.source
        if source is None:
            return None
        if self._source_encoding is None or self._source_encoding[0] != source.source_id:
            self._source_encoding = (source.source_id, encode_data_url(source))
        return self._source_encoding[1]


__all__ = ["Downloader", "FileDownloader", "OutputAdapter", "SOURCE_STAGE"]
