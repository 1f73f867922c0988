"""Forward engine — one content save → forwards to the selected destinations.

Runs synchronously in the caller's context. Destinations are processed
one at a time in selection order; each gets the primary payload and, if
that is rejected, one fallback payload. Nothing raises to the caller:
failures end up in the returned outcome and in the logs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from forwarder.forward.flags import FileFlagStore, FlagStore, MemoryFlagStore
from forwarder.forward.guard import ReentrancyGuard
from forwarder.forward.media import MediaAttacher
from forwarder.forward.models import (
    ContentSnapshot,
    Destination,
    ForwardOutcome,
    PayloadStrategy,
    PublishResult,
)
from forwarder.forward.outcome import OutcomeRecorder
from forwarder.forward.payload import build_payload, strategies
from forwarder.forward.publisher import RemotePublisher
from forwarder.forward.registry import DestinationRegistry
from forwarder.forward.snapshot import ContentNotFoundError, ContentSource, SnapshotBuilder

if TYPE_CHECKING:
    from forwarder.config import ForwarderConfig

logger = logging.getLogger(__name__)


class ForwardEngine:
    """Decides whether to forward an item and carries the attempt out."""

    def __init__(
        self,
        source: ContentSource,
        registry: DestinationRegistry,
        *,
        guard: ReentrancyGuard | None = None,
        publisher: RemotePublisher | None = None,
        attacher: MediaAttacher | None = None,
        enabled: bool = True,
        post_status: str = "draft",
        importing: bool = False,
        selection_field: str = "product",
    ) -> None:
        self.source = source
        self.registry = registry
        self.guard = guard or ReentrancyGuard(MemoryFlagStore())
        self.publisher = publisher or RemotePublisher()
        self.attacher = attacher or MediaAttacher()
        self.recorder = OutcomeRecorder(self.guard)
        self.snapshots = SnapshotBuilder(source, selection_field=selection_field)
        self.enabled = enabled
        self.post_status = post_status
        self.importing = importing

    @classmethod
    def from_config(
        cls,
        config: ForwarderConfig,
        source: ContentSource,
        *,
        flag_store: FlagStore | None = None,
        base_dir: Path | None = None,
    ) -> ForwardEngine:
        """Wire an engine from a loaded :class:`ForwarderConfig`.

        Flags default to a file store under ``forwarding.state_dir`` so
        separate processes share them.
        """
        fwd = config.forwarding
        if flag_store is None:
            state_dir = Path(fwd.state_dir)
            if base_dir is not None and not state_dir.is_absolute():
                state_dir = base_dir / state_dir
            flag_store = FileFlagStore(state_dir / "flags")
        guard = ReentrancyGuard(
            flag_store,
            lock_ttl=fwd.lock_ttl,
            processing_ttl=fwd.processing_ttl,
            cooldown_ttl=fwd.cooldown_ttl,
        )
        return cls(
            source,
            config.build_registry(base_dir),
            guard=guard,
            publisher=RemotePublisher(api_root=fwd.api_root, timeout=fwd.create_timeout),
            attacher=MediaAttacher(
                api_root=fwd.api_root,
                download_timeout=fwd.download_timeout,
                upload_timeout=fwd.upload_timeout,
                bind_timeout=fwd.bind_timeout,
            ),
            enabled=fwd.enabled,
            post_status=fwd.post_status,
            importing=fwd.importing,
            selection_field=fwd.selection_field,
        )

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    def on_content_saved(self, item_id: int) -> ForwardOutcome | None:
        """Handle a save of *item_id*.

        Returns the outcome when destinations were attempted, or ``None``
        when the attempt was skipped (locked, cooling down, disabled,
        nothing selected, revision, autosave, bulk import, missing item).
        """
        try:
            entered = self.guard.try_enter(item_id)
        except Exception:
            logger.warning("Could not read forwarding flags for item %s", item_id, exc_info=True)
            return None
        if not entered:
            return None
        try:
            destinations = self._eligible_destinations(item_id)
            if not destinations:
                self._release(item_id)
                return None
            snapshot = self.snapshots.build(item_id)
        except ContentNotFoundError:
            logger.debug("Item %s disappeared before forwarding", item_id)
            self._release(item_id)
            return None
        except Exception:
            logger.warning("Could not prepare item %s for forwarding", item_id, exc_info=True)
            self._release(item_id)
            return None

        outcome = ForwardOutcome(item_id=item_id)
        try:
            for destination in destinations:
                if self._forward_to(snapshot, destination):
                    outcome.succeeded_destinations.append(destination.key)
                else:
                    outcome.failed_destinations.append(destination.key)
        finally:
            try:
                self.recorder.finalize(item_id, outcome)
            except Exception:
                logger.warning(
                    "Could not record the outcome for item %s", item_id, exc_info=True
                )
        return outcome

    def _release(self, item_id: int) -> None:
        try:
            self.guard.release(item_id)
        except Exception:
            logger.warning("Could not release item %s", item_id, exc_info=True)

    def _eligible_destinations(self, item_id: int) -> list[Destination]:
        if self.importing:
            logger.debug("Bulk import in progress, not forwarding %s", item_id)
            return []
        item = self.source.get(item_id)
        if item is None:
            return []
        if item.is_revision or item.is_autosave:
            return []
        if not self.enabled:
            logger.debug("Forwarding disabled, not forwarding %s", item_id)
            return []
        selected = self.source.selected_destinations(item_id)
        if not selected:
            return []
        return self.registry.resolve(selected)

    # ------------------------------------------------------------------
    # Per destination
    # ------------------------------------------------------------------

    def _forward_to(self, snapshot: ContentSnapshot, destination: Destination) -> bool:
        """Try each payload strategy until one is accepted."""
        for strategy in strategies():
            try:
                result = self.publish(snapshot, destination, strategy)
            except Exception:
                logger.warning(
                    "Forwarding %s to %s (%s) failed",
                    snapshot.id,
                    destination.key,
                    strategy,
                    exc_info=True,
                )
                continue
            if not result.ok:
                continue
            if snapshot.featured_media_url and result.remote_id is not None:
                self.attacher.attach(
                    result.remote_id, snapshot.featured_media_url, destination, snapshot.type
                )
            return True
        logger.warning("Item %s was not accepted by %s", snapshot.id, destination.label)
        return False

    def publish(
        self,
        snapshot: ContentSnapshot,
        destination: Destination,
        strategy: PayloadStrategy,
    ) -> PublishResult:
        body = build_payload(snapshot, strategy, self.post_status)
        logger.debug("Sending item %s to %s with %s payload", snapshot.id, destination.key, strategy)
        return self.publisher.publish(destination, snapshot.type, body)
