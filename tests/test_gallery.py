from __future__ import annotations

import json
from pathlib import Path

import pytest

from sketchlab.core.errors import PersistenceFailure
from sketchlab.data.gallery import JsonGalleryStore


ENCODED = "data:image/png;base64,iVBORw0KGgo="


def test_save_then_list_returns_entry_with_unique_id(tmp_path: Path) -> None:
    store = JsonGalleryStore(tmp_path / "gallery.json")
    earlier = store.save("Earlier", ENCODED)

    entry = store.save("Test", ENCODED)
    entries = store.list()

    assert [item.title for item in entries] == ["Earlier", "Test"]
    assert entries[-1] == entry
    assert entry.id != earlier.id
    assert entry.saved_at.endswith("Z")


def test_entries_survive_a_new_store_instance(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "gallery.json"
    JsonGalleryStore(path).save("Keep", ENCODED)
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["schema"] == "sketchlab.gallery"
    assert [item.title for item in JsonGalleryStore(path).list()] == ["Keep"]


def test_empty_image_is_rejected(tmp_path: Path) -> None:
    store = JsonGalleryStore(tmp_path / "gallery.json")
    with pytest.raises(PersistenceFailure) as excinfo:
        store.save("Nothing", "")
    assert excinfo.value.operation == "save"
    assert store.list() == []


def test_delete_and_clear(tmp_path: Path) -> None:
    store = JsonGalleryStore(tmp_path / "gallery.json")
    first = store.save("One", ENCODED)
    store.save("Two", ENCODED)

    store.delete(first.id)
    assert [item.title for item in store.list()] == ["Two"]

    with pytest.raises(PersistenceFailure):
        store.delete(first.id)

    store.clear()
    assert store.list() == []


def test_corrupt_gallery_raises_persistence_failure(tmp_path: Path) -> None:
    path = tmp_path / "gallery.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonGalleryStore(path)
    with pytest.raises(PersistenceFailure):
        store.list()
    with pytest.raises(PersistenceFailure):
        store.save("Title", ENCODED)
