"""Outcome recorder: cool-down bookkeeping at the end of an attempt."""

from __future__ import annotations

import logging

from forwarder.forward.guard import ReentrancyGuard
from forwarder.forward.models import ForwardOutcome

logger = logging.getLogger(__name__)


class OutcomeRecorder:
    def __init__(self, guard: ReentrancyGuard) -> None:
        self._guard = guard

    def finalize(self, item_id: int, outcome: ForwardOutcome) -> None:
        """Set or clear the cool-down flag, then release the guard.

        The flag is set only after every destination has been processed,
        and before the lock is dropped.
        """
        try:
            if outcome.any_success:
                self._guard.mark_forwarded(item_id)
                logger.info(
                    "Item %s forwarded to %s",
                    item_id,
                    ", ".join(outcome.succeeded_destinations),
                )
            else:
                self._guard.clear_forwarded(item_id)
                logger.warning(
                    "Item %s was not forwarded to any destination; next save will retry",
                    item_id,
                )
        finally:
            self._guard.release(item_id)
