from __future__ import annotations

import json

import pytest

from seogen.errors import StoreError
from seogen.store import InMemoryPageStore, JsonFilePageStore, PageRef


def test_lists_pages_of_version_in_order():
    store = InMemoryPageStore(
        pages=[
            {"id": "b", "version_id": "v1", "path": "/two"},
            {"id": "a", "version_id": "v1", "path": "/one"},
            {"id": "c", "version_id": "v2", "path": "/three"},
        ]
    )

    assert store.list_pages_for_batch("v1") == [PageRef("b", "/two"), PageRef("a", "/one")]
    assert store.list_pages_for_batch("v1", ["a"]) == [PageRef("a", "/one")]


def test_unknown_rows_raise_store_error():
    store = InMemoryPageStore()

    with pytest.raises(StoreError):
        store.apply_field_updates("missing", {"title": "x"})
    with pytest.raises(StoreError):
        store.mark_version_generated("missing")


def test_json_store_persists_updates(tmp_path):
    path = tmp_path / "pages.json"
    path.write_text(
        json.dumps(
            {
                "pages": [{"id": "1", "version_id": "v1", "path": "/faq", "title": "Old"}],
                "versions": [{"id": "v1", "name": "draft"}],
            }
        ),
        encoding="utf-8",
    )

    store = JsonFilePageStore(str(path))
    store.apply_field_updates("1", {"title": "새 제목", "json_ld": {"@type": "WebPage"}})
    store.mark_version_generated("v1")

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["pages"][0]["title"] == "새 제목"
    assert saved["pages"][0]["json_ld"] == {"@type": "WebPage"}
    assert saved["versions"][0]["ai_generated"] is True
    assert "ai_generated_at" in saved["versions"][0]


def test_json_store_rejects_corrupt_file(tmp_path):
    path = tmp_path / "pages.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        JsonFilePageStore(str(path))
