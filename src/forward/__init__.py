"""Forward engine — republish content items to remote destinations."""

from forwarder.forward.engine import ForwardEngine
from forwarder.forward.flags import FileFlagStore, FlagStore, MemoryFlagStore
from forwarder.forward.guard import ReentrancyGuard
from forwarder.forward.media import MediaAttacher
from forwarder.forward.models import (
    ContentSnapshot,
    Destination,
    FlagState,
    ForwardOutcome,
    PayloadStrategy,
    PublishResult,
    TermRef,
)
from forwarder.forward.outcome import OutcomeRecorder
from forwarder.forward.payload import build_fallback, build_payload, build_primary
from forwarder.forward.publisher import RemotePublisher
from forwarder.forward.registry import DestinationRegistry, RegistryError
from forwarder.forward.snapshot import ContentNotFoundError, ContentSource, SnapshotBuilder

__all__ = [
    "ContentNotFoundError",
    "ContentSnapshot",
    "ContentSource",
    "Destination",
    "DestinationRegistry",
    "FileFlagStore",
    "FlagState",
    "FlagStore",
    "ForwardEngine",
    "ForwardOutcome",
    "MediaAttacher",
    "MemoryFlagStore",
    "OutcomeRecorder",
    "PayloadStrategy",
    "PublishResult",
    "ReentrancyGuard",
    "RegistryError",
    "RemotePublisher",
    "SnapshotBuilder",
    "TermRef",
    "build_fallback",
    "build_payload",
    "build_primary",
]
