"""Snapshot folding, change feed and balance tracking."""

from household_ledger.sync.feed import ChangeFeed
from household_ledger.sync.snapshot import HouseholdSnapshot, apply_change
from household_ledger.sync.tracker import BalanceTracker

__all__ = [
    "BalanceTracker",
    "ChangeFeed",
    "HouseholdSnapshot",
    "apply_change",
]
