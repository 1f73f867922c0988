"""JSON-backed content store.

Stands in for the source site's storage layer. Persists every
ContentItem plus the taxonomy registration per content type in a single
JSON file, loaded on init and saved after every write operation.
Implements the ``ContentSource`` read interface the snapshot builder
needs, and the destination selection field the authoring widget writes.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from forwarder.content.models import DEFAULT_TYPE_TAXONOMIES, ContentItem
from forwarder.forward.models import TermRef
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

STORE_FILENAME = ".forwarder-content.json"
SELECTION_FIELD = "product"


class _StoreData(BaseModel):
    """Internal wrapper for JSON serialization."""

    type_taxonomies: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_TYPE_TAXONOMIES.items()}
    )
    items: list[ContentItem] = Field(default_factory=list)


class ContentStore:
    """JSON-backed store for content items.

    *path* may be a directory (the store file is created inside it) or
    a path to the JSON file itself.
    """

    def __init__(self, path: Path, *, selection_field: str = SELECTION_FIELD) -> None:
        self._path = path / STORE_FILENAME if path.suffix != ".json" else path
        self.selection_field = selection_field
        self._data = self._load()

    # ── Private helpers ──────────────────────────────────────────

    def _load(self) -> _StoreData:
        if not self._path.exists():
            return _StoreData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _StoreData.model_validate(raw)
        except (json.JSONDecodeError, ValueError, KeyError):
            logger.warning("Corrupt content store at %s, starting fresh", self._path)
            return _StoreData()

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            self._data.model_dump_json(indent=2),
            encoding="utf-8",
        )

    def _find(self, item_id: int) -> ContentItem | None:
        for item in self._data.items:
            if item.id == item_id:
                return item
        return None

    def _require(self, item_id: int) -> ContentItem:
        item = self._find(item_id)
        if item is None:
            raise KeyError(item_id)
        return item

    # ── Write operations ─────────────────────────────────────────

    def upsert(self, item: ContentItem) -> None:
        """Insert or replace a content item by id."""
        self._data.items = [i for i in self._data.items if i.id != item.id]
        self._data.items.append(item)
        self._save()

    def register_taxonomy(self, content_type: str, taxonomy: str) -> None:
        """Make *taxonomy* applicable to *content_type*."""
        taxonomies = self._data.type_taxonomies.setdefault(content_type, [])
        if taxonomy not in taxonomies:
            taxonomies.append(taxonomy)
            self._save()

    def select_destinations(self, item_id: int, keys: list[str]) -> None:
        """Replace the selected destination keys for an item.

        Raises KeyError if the item does not exist.
        """
        item = self._require(item_id)
        cleaned = [k.strip() for k in keys if k and k.strip()]
        if cleaned:
            item.meta[self.selection_field] = cleaned
        else:
            item.meta.pop(self.selection_field, None)
        self._save()

    # ── ContentSource interface ──────────────────────────────────

    def get(self, item_id: int) -> ContentItem | None:
        """Return an item by id, or None if not found."""
        return self._find(item_id)

    def taxonomies_for(self, content_type: str) -> list[str]:
        return list(self._data.type_taxonomies.get(content_type, []))

    def terms(self, item_id: int, taxonomy: str) -> list[TermRef]:
        item = self._find(item_id)
        if item is None:
            return []
        return [
            TermRef(id=t.id, name=t.name, slug=t.slug)
            for t in item.terms.get(taxonomy, [])
        ]

    def featured_media_url(self, item_id: int) -> str | None:
        item = self._find(item_id)
        return item.featured_media_url if item else None

    def custom_fields(self, item_id: int) -> dict[str, list[Any]]:
        item = self._find(item_id)
        if item is None:
            return {}
        return {key: list(values) for key, values in item.meta.items()}

    def extension_fields(self, item_id: int) -> dict[str, Any] | None:
        item = self._find(item_id)
        if item is None or item.extension_fields is None:
            return None
        return dict(item.extension_fields)

    def selected_destinations(self, item_id: int) -> list[str]:
        item = self._find(item_id)
        if item is None:
            return []
        return [str(k) for k in item.meta.get(self.selection_field, []) if k]
