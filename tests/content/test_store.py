"""Tests for ContentStore — JSON-backed source content."""

import json
from pathlib import Path

import pytest
from forwarder.content.models import ContentItem, StoredTerm
from forwarder.content.store import STORE_FILENAME, ContentStore
from forwarder.forward.models import TermRef


def _make_item(item_id: int = 1, **kwargs: object) -> ContentItem:
    """Helper to build a ContentItem with sensible defaults."""
    return ContentItem(id=item_id, title="Test Post", body="Body", **kwargs)  # type: ignore[arg-type]


class TestUpsert:
    def test_creates_item(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        store.upsert(_make_item())
        fetched = store.get(1)
        assert fetched is not None
        assert fetched.title == "Test Post"

    def test_overwrites_existing(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        store.upsert(_make_item())
        store.upsert(ContentItem(id=1, title="Version 2"))
        assert store.get(1).title == "Version 2"

    def test_persists_to_disk(self, tmp_path: Path):
        ContentStore(tmp_path).upsert(_make_item())
        data = json.loads((tmp_path / STORE_FILENAME).read_text(encoding="utf-8"))
        assert data["items"][0]["id"] == 1

    def test_reloads_from_disk(self, tmp_path: Path):
        ContentStore(tmp_path).upsert(_make_item(meta={"product": ["a"]}))
        assert ContentStore(tmp_path).selected_destinations(1) == ["a"]

    def test_json_file_path(self, tmp_path: Path):
        path = tmp_path / "site.json"
        ContentStore(path).upsert(_make_item())
        assert path.exists()

    def test_corrupt_file_starts_fresh(self, tmp_path: Path):
        (tmp_path / STORE_FILENAME).write_text("not json", encoding="utf-8")
        store = ContentStore(tmp_path)
        assert store.get(1) is None
        assert store.taxonomies_for("post") == ["category", "post_tag"]


class TestTaxonomies:
    def test_default_post_taxonomies(self, tmp_path: Path):
        assert ContentStore(tmp_path).taxonomies_for("post") == ["category", "post_tag"]

    def test_register_taxonomy(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        store.register_taxonomy("event", "venue")
        store.register_taxonomy("event", "venue")
        assert store.taxonomies_for("event") == ["venue"]
        assert ContentStore(tmp_path).taxonomies_for("event") == ["venue"]

    def test_unknown_type(self, tmp_path: Path):
        assert ContentStore(tmp_path).taxonomies_for("page") == []

    def test_terms(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        store.upsert(
            _make_item(terms={"category": [StoredTerm(id=3, name="News", slug="news")]})
        )
        assert store.terms(1, "category") == [TermRef(id=3, name="News", slug="news")]
        assert store.terms(1, "post_tag") == []
        assert store.terms(99, "category") == []


class TestSelection:
    def test_select_destinations(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        store.upsert(_make_item())
        store.select_destinations(1, [" a ", "", "b"])
        assert store.selected_destinations(1) == ["a", "b"]

    def test_empty_selection_clears_field(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        store.upsert(_make_item(meta={"product": ["a"]}))
        store.select_destinations(1, [])
        assert store.selected_destinations(1) == []
        assert "product" not in store.custom_fields(1)

    def test_missing_item_raises(self, tmp_path: Path):
        with pytest.raises(KeyError):
            ContentStore(tmp_path).select_destinations(5, ["a"])

    def test_custom_selection_field(self, tmp_path: Path):
        store = ContentStore(tmp_path, selection_field="portals")
        store.upsert(_make_item(meta={"portals": ["x"], "product": ["y"]}))
        assert store.selected_destinations(1) == ["x"]


class TestReadInterface:
    def test_missing_item_defaults(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        assert store.featured_media_url(1) is None
        assert store.custom_fields(1) == {}
        assert store.extension_fields(1) is None
        assert store.selected_destinations(1) == []

    def test_custom_fields_are_copies(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        store.upsert(_make_item(meta={"a": ["x"]}))
        store.custom_fields(1)["a"].append("y")
        assert store.custom_fields(1) == {"a": ["x"]}

    def test_extension_fields(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        store.upsert(_make_item(extension_fields={"rating": 5}))
        assert store.extension_fields(1) == {"rating": 5}

    def test_featured_media(self, tmp_path: Path):
        store = ContentStore(tmp_path)
        store.upsert(_make_item(featured_media_url="https://s.example/a.jpg"))
        assert store.featured_media_url(1) == "https://s.example/a.jpg"
