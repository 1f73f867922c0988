"""Content domain — source-site content items and their JSON store."""

from forwarder.content.models import ContentItem, StoredTerm
from forwarder.content.store import ContentStore

__all__ = [
    "ContentItem",
    "ContentStore",
    "StoredTerm",
]
