"""Destination request bodies under the two payload strategies.

Primary sends term slugs grouped under the destination's REST fields.
Fallback drops the taxonomy structure and sends every term name and slug
as plain tags, for destinations missing the source's taxonomies.

Fallback tags mix names and slugs on the wire; whether a destination
reads a human-readable name as a tag is unverified.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from forwarder.forward.models import ContentSnapshot, PayloadStrategy

CATEGORY_TAXONOMY = "category"
TAG_TAXONOMIES = ("post_tag", "custom-tag")


def _base_body(snapshot: ContentSnapshot, status: str) -> dict[str, Any]:
    return {
        "title": snapshot.title,
        "content": snapshot.body,
        "excerpt": snapshot.excerpt,
        "status": status,
    }


def _with_meta(body: dict[str, Any], snapshot: ContentSnapshot) -> dict[str, Any]:
    if snapshot.custom_fields:
        body["meta"] = dict(snapshot.custom_fields)
    return body


def build_primary(snapshot: ContentSnapshot, status: str = "draft") -> dict[str, Any]:
    """Body with taxonomy slugs mapped onto REST fields."""
    body = _base_body(snapshot, status)
    for taxonomy, terms in snapshot.taxonomy_groups.items():
        slugs = [t.slug for t in terms]
        if not slugs:
            continue
        if taxonomy == CATEGORY_TAXONOMY:
            body["categories"] = slugs
        elif taxonomy in TAG_TAXONOMIES:
            body["tags"] = body.get("tags", []) + slugs
        else:
            # May or may not exist on the destination.
            body[taxonomy] = slugs
    return _with_meta(body, snapshot)


def build_fallback(snapshot: ContentSnapshot, status: str = "draft") -> dict[str, Any]:
    """Body with only flattened tags and no taxonomy fields."""
    body = _base_body(snapshot, status)
    if snapshot.fallback_tags:
        body["tags"] = list(snapshot.fallback_tags)
    return _with_meta(body, snapshot)


_BUILDERS = {
    PayloadStrategy.PRIMARY: build_primary,
    PayloadStrategy.FALLBACK: build_fallback,
}


def build_payload(
    snapshot: ContentSnapshot, strategy: PayloadStrategy | str, status: str = "draft"
) -> dict[str, Any]:
    return _BUILDERS[PayloadStrategy(strategy)](snapshot, status)


def strategies() -> Iterator[PayloadStrategy]:
    """Strategies in attempt order; stop at the first 2xx."""
    yield PayloadStrategy.PRIMARY
    yield PayloadStrategy.FALLBACK
