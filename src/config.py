"""Unified configuration loaded from .forwarder.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from forwarder.forward.registry import DestinationRegistry
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".forwarder.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
    Path.home() / ".config" / "forwarder",
]

PostStatus = Literal["publish", "draft"]


class ForwardingConfig(BaseModel):
    """[forwarding] section."""

    enabled: bool = False
    post_status: PostStatus = "draft"
    api_root: str = "wp-json/wp/v2"
    importing: bool = False
    selection_field: str = "product"
    state_dir: str = ".forwarder"
    lock_ttl: int = 30
    processing_ttl: int = 120
    cooldown_ttl: int = 300
    create_timeout: int = 30
    download_timeout: int = 30
    upload_timeout: int = 60
    bind_timeout: int = 30

    @field_validator("post_status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if value not in ("publish", "draft"):
            logger.warning("Unsupported post_status %r, using 'draft'", value)
            return "draft"
        return value


class StoreConfig(BaseModel):
    """[store] section."""

    path: str = "."


class DestinationTargetConfig(BaseModel):
    """A single named destination (e.g. [destinations.sociaalweb])."""

    name: str = ""
    url: str = ""
    user: str = ""
    password: str = ""


class DestinationsSectionConfig(BaseModel):
    """[destinations] section with named targets.

    Named targets::

        [destinations]
        mappings_file = "mappings.json"

        [destinations.sociaalweb]
        name = "Sociaalweb Portal"
        url = "https://sociaalweb.example"
        user = "1728"
        password = "xxxx xxxx xxxx xxxx"

    ``mappings_file`` points at the JSON the settings editor produces;
    TOML targets win on key collisions.
    """

    mappings_file: str = ""
    targets: dict[str, DestinationTargetConfig] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _extract_targets(cls, data: Any) -> Any:
        """Extract named sub-dicts as targets before validation."""
        if not isinstance(data, dict):
            return data
        data = dict(data)  # shallow copy
        known = {"mappings_file", "targets"}
        targets: dict[str, object] = {}
        for key in list(data.keys()):
            if key not in known and isinstance(data[key], dict):
                targets[key] = data.pop(key)
        if targets:
            existing = data.get("targets", {})
            if isinstance(existing, dict):
                existing.update(targets)
                data["targets"] = existing
            else:
                data["targets"] = targets
        return data

    @property
    def target_names(self) -> list[str]:
        """List all named targets."""
        return list(self.targets.keys())


class ForwarderConfig(BaseModel):
    """Top-level configuration model."""

    forwarding: ForwardingConfig = Field(default_factory=ForwardingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    destinations: DestinationsSectionConfig = Field(default_factory=DestinationsSectionConfig)

    def build_registry(self, base_dir: Path | None = None) -> DestinationRegistry:
        """Resolve the JSON mappings file and TOML targets into one registry."""
        registry = DestinationRegistry()
        if self.destinations.mappings_file:
            mappings_path = Path(self.destinations.mappings_file)
            if base_dir is not None and not mappings_path.is_absolute():
                mappings_path = base_dir / mappings_path
            registry = DestinationRegistry.from_file(mappings_path)
        targets = {
            key: target.model_dump() for key, target in self.destinations.targets.items()
        }
        return registry.merged(DestinationRegistry.from_mapping(targets))


def load_config(path: str | Path | None = None) -> ForwarderConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .forwarder.toml in CWD
    3. ~/.config/forwarder/.forwarder.toml
    4. ~/.config/forwarder/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged ForwarderConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        global_config = Path.home() / ".config" / "forwarder" / "config.toml"
        if not data and global_config.exists():
            data = _load_toml(global_config)
            logger.info("Loaded config from %s", global_config)

    config = ForwarderConfig.model_validate(data) if data else ForwarderConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: ForwarderConfig, **cli_kwargs: object) -> ForwarderConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "enabled": ("forwarding", "enabled"),
        "post_status": ("forwarding", "post_status"),
        "state_dir": ("forwarding", "state_dir"),
        "store_path": ("store", "path"),
        "mappings_file": ("destinations", "mappings_file"),
    }

    for key, value in cli_kwargs.items():
        if value is None or key not in mapping:
            continue
        section, field = mapping[key]
        data[section][field] = value

    return ForwarderConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: ForwarderConfig) -> ForwarderConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "FORWARDER_ENABLED": ("forwarding", "enabled"),
        "FORWARDER_POST_STATUS": ("forwarding", "post_status"),
        "FORWARDER_STATE_DIR": ("forwarding", "state_dir"),
        "FORWARDER_IMPORTING": ("forwarding", "importing"),
        "FORWARDER_STORE": ("store", "path"),
        "FORWARDER_MAPPINGS_FILE": ("destinations", "mappings_file"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value:
            data[section][field] = value

    return ForwarderConfig.model_validate(data)
