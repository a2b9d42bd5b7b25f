"""Gallery persistence for encoded stage outputs.

The pipeline only ever calls :meth:`GalleryStore.save`; listing, deleting and
clearing exist for the gallery view that sits outside the core. The bundled
:class:`JsonGalleryStore` keeps every entry in a single JSON document that is
rewritten atomically on each mutation.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, List, Optional, Protocol

from sketchlab.core.errors import PersistenceFailure


_LOGGER = logging.getLogger(__name__)

DEFAULT_GALLERY_PATH = Path.home() / ".sketchlab" / "gallery.json"
_SCHEMA = "sketchlab.gallery"
_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def _write_json_atomic(path: Path, payload: Dict[str, Any]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=str(path.parent))
    try:
        with tmp_file:
            json.dump(payload, tmp_file, indent=2, sort_keys=True)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_file.name, path)
    except Exception:
        try:
            os.unlink(tmp_file.name)
        except FileNotFoundError:
            pass
        raise


@dataclass(frozen=True)
class GalleryEntry:
    """One saved image."""

    id: str
    title: str
    encoded_image: str
    saved_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GalleryEntry":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            encoded_image=str(data["encoded_image"]),
            saved_at=str(data.get("saved_at", "")),
        )


class GalleryStore(Protocol):
    """Contract of the persistence collaborator."""

    def save(self, title: str, encoded_image: str) -> GalleryEntry: ...

    def list(self) -> List[GalleryEntry]: ...

    def delete(self, entry_id: str) -> None: ...

    def clear(self) -> None: ...


class JsonGalleryStore:
    """Gallery persisted as an ordered list in a JSON file."""

    def __init__(
        self,
        path: Optional[Path | str] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._path = Path(path) if path else DEFAULT_GALLERY_PATH
        self._logger = logger or _LOGGER
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def save(self, title: str, encoded_image: str) -> GalleryEntry:
        if not encoded_image:
            self._logger.warning("Refusing to save an empty image", extra={"title": title})
            raise PersistenceFailure("save", "cannot save an empty image")
        entry = GalleryEntry(
            id=str(uuid.uuid4()),
            title=str(title),
            encoded_image=encoded_image,
            saved_at=_isoformat(_utcnow()),
        )
        with self._lock:
            entries = self._read_locked("save")
            entries.append(entry)
            self._write_locked("save", entries)
        self._logger.info("Image saved to gallery", extra={"title": entry.title, "id": entry.id})
        return entry

    def list(self) -> List[GalleryEntry]:
        with self._lock:
            return self._read_locked("list")

    def delete(self, entry_id: str) -> None:
        with self._lock:
            entries = self._read_locked("delete")
            remaining = [entry for entry in entries if entry.id != entry_id]
            if len(remaining) == len(entries):
                raise PersistenceFailure("delete", f"no gallery entry with id {entry_id!r}")
            self._write_locked("delete", remaining)
        self._logger.info("Image removed from gallery", extra={"id": entry_id})

    def clear(self) -> None:
        with self._lock:
            self._write_locked("clear", [])
        self._logger.info("Gallery cleared", extra={"path": str(self._path)})

    def _read_locked(self, operation: str) -> List[GalleryEntry]:
        if not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
            items = payload.get("entries", []) if isinstance(payload, dict) else payload
            return [GalleryEntry.from_dict(item) for item in items]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            self._logger.error(
                "Failed to read gallery", extra={"path": str(self._path), "error": str(exc)}
            )
            raise PersistenceFailure(operation, f"gallery at {self._path} is unreadable") from exc

    def _write_locked(self, operation: str, entries: List[GalleryEntry]) -> None:
        payload = {
            "schema": _SCHEMA,
            "version": _VERSION,
            "entries": [entry.to_dict() for entry in entries],
        }
        try:
            _write_json_atomic(self._path, payload)
        except OSError as exc:
            self._logger.error(
                "Failed to write gallery", extra={"path": str(self._path), "error": str(exc)}
            )
            raise PersistenceFailure(operation, str(exc)) from exc


__all__ = ["DEFAULT_GALLERY_PATH", "GalleryEntry", "GalleryStore", "JsonGalleryStore"]
