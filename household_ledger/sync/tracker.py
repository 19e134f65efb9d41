"""
Balance Tracker

Keeps a local snapshot in step with the change feed and recomputes
the balance matrix after every event.

DESIGN DECISION: Each event triggers an independent full recomputation.
Recomputing is cheap, so there is no debouncing and no incremental
bookkeeping that could drift from the records.
"""

from collections.abc import Callable
from typing import Optional

import structlog

from household_ledger.models.events import ChangeEvent
from household_ledger.models.ledger import BalanceMatrix
from household_ledger.sync.feed import ChangeFeed
from household_ledger.sync.snapshot import HouseholdSnapshot, apply_change


BalanceListener = Callable[[BalanceMatrix], None]


class BalanceTracker:
    """Folds change events into a snapshot and exposes current balances."""

    def __init__(self, snapshot: Optional[HouseholdSnapshot] = None):
        self._snapshot = snapshot or HouseholdSnapshot()
        self._balances = self._snapshot.compute_balances()
        self._listeners: list[BalanceListener] = []
        self._logger = structlog.get_logger(__name__)

    @property
    def snapshot(self) -> HouseholdSnapshot:
        return self._snapshot

    @property
    def balances(self) -> BalanceMatrix:
        return self._balances

    def add_listener(self, listener: BalanceListener) -> None:
        """Call listener with the new matrix after each recomputation."""
        self._listeners.append(listener)

    def attach(self, feed: ChangeFeed) -> Callable[[], None]:
        """Follow a change feed. Returns the unsubscribe callable."""
        return feed.subscribe(self.handle)

    def load(self, snapshot: HouseholdSnapshot) -> BalanceMatrix:
        """Replace the whole snapshot (initial load or resync)."""
        self._snapshot = snapshot
        self._logger.info("snapshot_loaded", **snapshot.counts())
        return self._recompute()

    def handle(self, event: ChangeEvent) -> BalanceMatrix:
        """Fold one change event and recompute."""
        self._snapshot = apply_change(self._snapshot, event)
        self._logger.debug(
            "change_applied",
            collection=event.collection.value,
            kind=event.kind.value,
            key=str(event.record.key),
        )
        return self._recompute()

    def _recompute(self) -> BalanceMatrix:
        self._balances = self._snapshot.compute_balances()
        for listener in self._listeners:
            listener(self._balances)
        return self._balances
