"""Key/value settings with defaults and JSON import/export."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, List, Mapping, Optional


LOGGER = logging.getLogger(__name__)


DEFAULT_SETTINGS: Dict[str, Any] = {
    # Pipeline --------------------------------------------------------------------
    "pipeline/debounce_ms": 100,
    # Edge detection ----------------------------------------------------------------
    "edge/default_threshold": 50,
    "edge/gradient_diff/threshold_min": 0,
    "edge/gradient_diff/threshold_max": 200,
    "edge/sobel/threshold_min": 0,
    "edge/sobel/threshold_max": 1500,
    # Sketch ----------------------------------------------------------------------
    "sketch/threshold": 150,
    # Source loading ----------------------------------------------------------------
    "loader/cache_entries": 4,
    "loader/preserve_outputs_while_loading": True,
    # Gallery -----------------------------------------------------------------------
    "gallery/path": "",
}


class SettingsManager:
    """Settings store seeded from :data:`DEFAULT_SETTINGS`.

    When ``path`` is given the values are loaded from that JSON file on
    construction and written back after every mutation.
    """

    def __init__(
        self,
        path: Optional[os.PathLike[str] | str] = None,
        *,
        seed_defaults: bool = True,
    ) -> None:
        self._values: Dict[str, Any] = dict(DEFAULT_SETTINGS) if seed_defaults else {}
        self._path: Optional[Path] = Path(path) if path is not None else None
        if self._path is not None and self._path.exists():
            self.import_json(self._path)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self._values.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._values.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            LOGGER.warning("Setting is not an integer", extra={"key": key, "value": value})
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self._values.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            LOGGER.warning("Setting is not a number", extra={"key": key, "value": value})
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._sync()

    def remove(self, key: str) -> None:
        self._values.pop(key, None)
        self._sync()

    def clear(self) -> None:
        self._values.clear()
        self._sync()

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def from_dict(self, values: Mapping[str, Any], *, clear: bool = False) -> None:
        if clear:
            self._values.clear()
        self._values.update(values)
        self._sync()

    def export_json(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh, indent=2, sort_keys=True)

    def import_json(self, path: Path, *, clear: bool = False) -> None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError("Settings JSON must describe an object")
        if clear:
            self._values.clear()
        self._values.update(data)

    def keys(self) -> List[str]:
        return sorted(self._values)

    def _sync(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = NamedTemporaryFile(
            "w", encoding="utf-8", delete=False, dir=str(self._path.parent)
        )
        try:
            with tmp_file:
                json.dump(self._values, tmp_file, indent=2, sort_keys=True)
            os.replace(tmp_file.name, self._path)
        except Exception:
            try:
                os.unlink(tmp_file.name)
            except FileNotFoundError:
                pass
            raise


__all__ = ["DEFAULT_SETTINGS", "SettingsManager"]
