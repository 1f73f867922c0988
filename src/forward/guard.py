"""Re-entrancy guard: keeps one forward attempt per content item."""

from __future__ import annotations

import logging

from forwarder.forward.flags import FlagStore
from forwarder.forward.models import FlagState

logger = logging.getLogger(__name__)

LOCK_TTL = 30
PROCESSING_TTL = 120
COOLDOWN_TTL = 300


def lock_key(item_id: int) -> str:
    return f"post_forwarding_lock_{item_id}"


def processing_key(item_id: int) -> str:
    return f"post_forwarding_processing_{item_id}"


def forwarded_key(item_id: int) -> str:
    return f"post_forwarded_{item_id}"


class ReentrancyGuard:
    """Expiring-flag mutual exclusion keyed by content item id.

    ``lock`` is the authoritative flag and is taken with an atomic
    set-if-absent. ``processing`` outlives it so a slow attempt whose
    lock expired still blocks newcomers, and ``recently_forwarded`` holds
    off re-triggers during the cool-down after a success.
    """

    def __init__(
        self,
        store: FlagStore,
        *,
        lock_ttl: float = LOCK_TTL,
        processing_ttl: float = PROCESSING_TTL,
        cooldown_ttl: float = COOLDOWN_TTL,
    ) -> None:
        self.store = store
        self.lock_ttl = lock_ttl
        self.processing_ttl = processing_ttl
        self.cooldown_ttl = cooldown_ttl

    def try_enter(self, item_id: int) -> bool:
        """Acquire the guard for *item_id*.

        Returns False without touching another attempt's flags when the
        item is locked, still processing, or cooling down.
        """
        if not self.store.add(lock_key(item_id), self.lock_ttl):
            logger.debug("Item %s is locked by another attempt", item_id)
            return False
        if self.store.exists(processing_key(item_id)):
            logger.debug("Item %s is still being processed", item_id)
            self.store.delete(lock_key(item_id))
            return False
        if self.store.exists(forwarded_key(item_id)):
            logger.debug("Item %s was forwarded recently, skipping", item_id)
            self.store.delete(lock_key(item_id))
            return False
        self.store.set(processing_key(item_id), self.processing_ttl)
        return True

    def release(self, item_id: int) -> None:
        self.store.delete(lock_key(item_id))
        self.store.delete(processing_key(item_id))

    def mark_forwarded(self, item_id: int) -> None:
        self.store.set(forwarded_key(item_id), self.cooldown_ttl)

    def clear_forwarded(self, item_id: int) -> None:
        self.store.delete(forwarded_key(item_id))

    def is_recently_forwarded(self, item_id: int) -> bool:
        return self.store.exists(forwarded_key(item_id))

    def state(self, item_id: int) -> FlagState:
        return FlagState(
            item_id=item_id,
            processing=self.store.exists(processing_key(item_id)),
            locked=self.store.exists(lock_key(item_id)),
            recently_forwarded=self.store.exists(forwarded_key(item_id)),
        )

    def reset(self, item_id: int) -> None:
        """Clear all three flags, making the item eligible again."""
        self.release(item_id)
        self.clear_forwarded(item_id)
