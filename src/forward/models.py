"""Pure data models for the forward engine.

All Pydantic models and enums live here. No I/O, no business logic.
Services import from this module; this module only imports from stdlib
and third-party packages.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONTENT_TYPE = "post"

# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


class Destination(BaseModel):
    """A remote site that can receive forwarded content.

    Accepts the legacy mapping spelling (``name``, ``url``, ``password``)
    alongside the canonical field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str
    display_name: str = Field(
        default="", validation_alias=AliasChoices("display_name", "name")
    )
    base_url: str = Field(validation_alias=AliasChoices("base_url", "url"))
    user: str = ""
    secret: str = Field(
        default="", validation_alias=AliasChoices("secret", "password")
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @property
    def label(self) -> str:
        return self.display_name or self.key


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class TermRef(BaseModel):
    """One taxonomy term attached to a content item."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: str


class ContentSnapshot(BaseModel):
    """Immutable, fully-resolved view of a content item.

    Built once per forward attempt and shared by every destination in
    that attempt.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    type: str = DEFAULT_CONTENT_TYPE
    title: str = ""
    body: str = ""
    excerpt: str = ""
    taxonomy_groups: dict[str, tuple[TermRef, ...]] = Field(default_factory=dict)
    fallback_tags: tuple[str, ...] = ()
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    featured_media_url: str | None = None


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class PayloadStrategy(StrEnum):
    """Payload construction strategies, in attempt order."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class PublishResult(BaseModel):
    """Result of one create-content call (after any endpoint fallback).

    ``status_code`` is ``None`` when the request never got an HTTP
    response (DNS failure, refused connection, timeout).
    """

    ok: bool
    status_code: int | None = None
    remote_id: int | str | None = None
    endpoint: str = ""
    error: str = ""


class ForwardOutcome(BaseModel):
    """Per-attempt summary, used to decide the cool-down flag."""

    item_id: int
    succeeded_destinations: list[str] = Field(default_factory=list)
    failed_destinations: list[str] = Field(default_factory=list)

    @property
    def any_success(self) -> bool:
        return bool(self.succeeded_destinations)


class FlagState(BaseModel):
    """Snapshot of the three expiring flags for one item."""

    item_id: int
    processing: bool = False
    locked: bool = False
    recently_forwarded: bool = False

    @property
    def eligible(self) -> bool:
        return not (self.processing or self.locked or self.recently_forwarded)
