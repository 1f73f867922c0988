"""Content domain models — pure Pydantic v2 data types.

These models represent what the source site stores for a content item:
its text, the terms attached per taxonomy, raw custom fields (multi-valued,
as the source platform keeps them), optional extension field-group values,
the featured image and the destinations an editor selected.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class StoredTerm(BaseModel):
    """A taxonomy term as stored on the source site."""

    id: int
    name: str
    slug: str


class ContentItem(BaseModel):
    """A single content item (post, page or custom type)."""

    id: int
    type: str = "post"
    title: str = ""
    body: str = ""
    excerpt: str = ""
    is_revision: bool = False
    is_autosave: bool = False
    terms: dict[str, list[StoredTerm]] = Field(default_factory=dict)
    meta: dict[str, list[Any]] = Field(default_factory=dict)
    extension_fields: dict[str, Any] | None = None
    featured_media_url: str | None = None


DEFAULT_TYPE_TAXONOMIES: dict[str, list[str]] = {
    "post": ["category", "post_tag"],
}
