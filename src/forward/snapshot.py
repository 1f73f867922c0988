"""Content snapshot builder.

Reads everything a forward attempt needs from the content source once,
up front, and freezes it into a :class:`ContentSnapshot`.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from forwarder.forward.models import ContentSnapshot, TermRef

logger = logging.getLogger(__name__)

# Keys the source platform uses internally; never forwarded.
RESERVED_FIELDS = frozenset(
    {"_edit_lock", "_edit_last", "_wp_old_slug", "_wp_old_date", "_thumbnail_id"}
)
# Field-definition keys written by the extension field-group mechanism.
EXTENSION_KEY_PREFIXES = ("field_", "_field_")


class ContentNotFoundError(LookupError):
    """Raised when the content source has no item for an id."""


class ContentItemLike(Protocol):
    id: int
    type: str
    title: str
    body: str
    excerpt: str
    is_revision: bool
    is_autosave: bool


class ContentSource(Protocol):
    """Read interface onto the source site's content storage."""

    def get(self, item_id: int) -> ContentItemLike | None: ...

    def taxonomies_for(self, content_type: str) -> list[str]: ...

    def terms(self, item_id: int, taxonomy: str) -> list[TermRef]: ...

    def featured_media_url(self, item_id: int) -> str | None: ...

    def custom_fields(self, item_id: int) -> dict[str, list[Any]]: ...

    def extension_fields(self, item_id: int) -> dict[str, Any] | None: ...

    def selected_destinations(self, item_id: int) -> list[str]: ...


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _is_extension_key(key: str) -> bool:
    return key.startswith(EXTENSION_KEY_PREFIXES)


def flatten_custom_fields(
    raw: dict[str, Any],
    extension: dict[str, Any] | None = None,
    *,
    reserved: frozenset[str] = RESERVED_FIELDS,
) -> dict[str, Any]:
    """Merge raw custom fields and extension fields into one mapping.

    Reserved keys and extension field-definition keys are dropped,
    single-element lists are unwrapped and empty values are skipped.
    Extension values override same-named custom fields.
    """
    merged: dict[str, Any] = {}
    for key, value in raw.items():
        if key in reserved or _is_extension_key(key):
            continue
        if isinstance(value, (list, tuple)) and len(value) == 1:
            value = value[0]
        if _is_empty(value):
            continue
        merged[key] = value

    for key, value in (extension or {}).items():
        if _is_extension_key(key) or _is_empty(value):
            continue
        merged[key] = value
    return merged


def collect_fallback_tags(groups: dict[str, tuple[TermRef, ...]]) -> tuple[str, ...]:
    """Union of every term name and slug, first-seen order, no blanks."""
    seen: dict[str, None] = {}
    for terms in groups.values():
        for term in terms:
            for tag in (term.name, term.slug):
                if tag:
                    seen.setdefault(tag, None)
    return tuple(seen)


class SnapshotBuilder:
    """Builds immutable snapshots from a :class:`ContentSource`."""

    def __init__(self, source: ContentSource, *, selection_field: str = "product") -> None:
        self._source = source
        self._reserved = RESERVED_FIELDS | {selection_field}

    def build(self, item_id: int) -> ContentSnapshot:
        """Snapshot a content item.

        Raises:
            ContentNotFoundError: If the source has no item for *item_id*.
        """
        item = self._source.get(item_id)
        if item is None:
            raise ContentNotFoundError(item_id)

        groups: dict[str, tuple[TermRef, ...]] = {}
        for taxonomy in self._source.taxonomies_for(item.type):
            terms = tuple(self._source.terms(item_id, taxonomy))
            if terms:
                groups[taxonomy] = terms

        custom_fields = flatten_custom_fields(
            self._source.custom_fields(item_id),
            self._source.extension_fields(item_id),
            reserved=self._reserved,
        )

        snapshot = ContentSnapshot(
            id=item.id,
            type=item.type,
            title=item.title,
            body=item.body,
            excerpt=item.excerpt,
            taxonomy_groups=groups,
            fallback_tags=collect_fallback_tags(groups),
            custom_fields=custom_fields,
            featured_media_url=self._source.featured_media_url(item_id) or None,
        )
        logger.debug(
            "Snapshot of item %s: %d taxonomies, %d fields, media=%s",
            item_id,
            len(groups),
            len(custom_fields),
            bool(snapshot.featured_media_url),
        )
        return snapshot
