from __future__ import annotations

import json
from pathlib import Path

from sketchlab.core.settings_manager import DEFAULT_SETTINGS, SettingsManager


def test_settings_json_roundtrip(tmp_path: Path) -> None:
    manager = SettingsManager(seed_defaults=False)
    manager.set("alpha", 123)
    manager.set("beta", {"nested": [1, 2, 3]})

    export_path = tmp_path / "settings.json"
    manager.export_json(export_path)
    assert export_path.exists()

    exported = json.loads(export_path.read_text(encoding="utf-8"))
    assert exported == {"alpha": 123, "beta": {"nested": [1, 2, 3]}}

    manager.clear()
    assert manager.get("alpha") is None
    assert manager.get("beta") is None

    manager.import_json(export_path)
    assert manager.get("alpha") == 123
    assert manager.get("beta") == {"nested": [1, 2, 3]}


def test_settings_from_dict_with_clear() -> None:
    manager = SettingsManager(seed_defaults=False)
    manager.set("keep", "value")

    manager.from_dict({"fresh": 42}, clear=True)
    assert manager.get("keep") is None
    assert manager.get("fresh") == 42
    assert manager.to_dict() == {"fresh": 42}


def test_defaults_are_seeded() -> None:
    manager = SettingsManager()
    assert manager.get_int("pipeline/debounce_ms") == 100
    assert manager.get_float("edge/sobel/threshold_max") == 1500.0
    assert manager.get_bool("loader/preserve_outputs_while_loading") is True
    assert manager.keys() == sorted(DEFAULT_SETTINGS)


def test_typed_getters_fall_back_on_bad_values() -> None:
    manager = SettingsManager(seed_defaults=False)
    manager.set("number", "abc")
    manager.set("flag", "yes")
    assert manager.get_int("number", 7) == 7
    assert manager.get_float("number", 1.5) == 1.5
    assert manager.get_bool("flag") is True


def test_backed_settings_persist_every_change(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    manager = SettingsManager(path)
    manager.set("edge/default_threshold", 80)
    manager.remove("gallery/path")

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert "gallery/path" not in stored
    reloaded = SettingsManager(path)
    assert reloaded.get_int("edge/default_threshold") == 80
