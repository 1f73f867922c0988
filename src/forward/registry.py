"""Destination registry: product key -> destination descriptor."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from forwarder.forward.models import Destination
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class RegistryError(ValueError):
    """Raised when a destination mapping cannot be parsed at all."""


class DestinationRegistry:
    """Read-only lookup of configured destinations, in configuration order."""

    def __init__(self, destinations: Mapping[str, Destination] | None = None) -> None:
        self._destinations: dict[str, Destination] = dict(destinations or {})

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> DestinationRegistry:
        """Build a registry from ``{key: {name, url, user, password}}``.

        Entries without a url are skipped with a warning, mirroring the
        admin form which only saves rows with a key, name and url.
        """
        destinations: dict[str, Destination] = {}
        for key, raw in mapping.items():
            if not key or not isinstance(raw, Mapping):
                logger.warning("Skipping malformed destination entry %r", key)
                continue
            try:
                destinations[key] = Destination.model_validate({**raw, "key": key})
            except ValidationError as exc:
                logger.warning("Skipping destination %r: %s", key, exc.errors()[0]["msg"])
                continue
            if not destinations[key].base_url:
                logger.warning("Skipping destination %r: empty url", key)
                del destinations[key]
        return cls(destinations)

    @classmethod
    def from_json(cls, text: str) -> DestinationRegistry:
        """Parse the JSON mapping format used by the settings editor.

        Raises:
            RegistryError: If *text* is not a JSON object.
        """
        try:
            data = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as exc:
            raise RegistryError(f"Invalid JSON format in mappings: {exc}") from exc
        if not isinstance(data, dict):
            raise RegistryError("Destination mappings must be a JSON object")
        return cls.from_mapping(data)

    @classmethod
    def from_file(cls, path: Path) -> DestinationRegistry:
        """Load a JSON mappings file; a missing or corrupt file yields an empty registry."""
        if not path.exists():
            logger.warning("Mappings file not found: %s", path)
            return cls()
        try:
            return cls.from_json(path.read_text(encoding="utf-8"))
        except (RegistryError, OSError) as exc:
            logger.warning("Failed to load mappings from %s: %s", path, exc)
            return cls()

    def merged(self, other: DestinationRegistry) -> DestinationRegistry:
        """Return a new registry where *other* wins on key collisions."""
        return DestinationRegistry({**self._destinations, **other._destinations})

    def get(self, key: str) -> Destination | None:
        return self._destinations.get(key)

    def resolve(self, keys: list[str]) -> list[Destination]:
        """Map selected keys to destinations, keeping selection order.

        Unknown keys are logged and dropped; duplicates are collapsed.
        """
        resolved: list[Destination] = []
        seen: set[str] = set()
        for key in keys:
            if key in seen:
                continue
            seen.add(key)
            destination = self._destinations.get(key)
            if destination is None:
                logger.warning("Selected destination %r is not configured, skipping", key)
                continue
            resolved.append(destination)
        return resolved

    def to_mapping(self) -> dict[str, dict[str, str]]:
        """Serialize back to the settings-editor JSON shape."""
        return {
            key: {
                "name": d.display_name,
                "url": d.base_url,
                "user": d.user,
                "password": d.secret,
            }
            for key, d in self._destinations.items()
        }

    @property
    def keys(self) -> list[str]:
        return list(self._destinations)

    def __contains__(self, key: object) -> bool:
        return key in self._destinations

    def __iter__(self) -> Iterator[Destination]:
        return iter(self._destinations.values())

    def __len__(self) -> int:
        return len(self._destinations)
