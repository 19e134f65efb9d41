"""Tests for the change feed and the balance tracker."""

from decimal import Decimal

import pytest

from household_ledger.models.events import ChangeEvent
from household_ledger.models.records import Contribution, Payment, Resident
from household_ledger.sync.feed import ChangeFeed
from household_ledger.sync.snapshot import HouseholdSnapshot
from household_ledger.sync.tracker import BalanceTracker


@pytest.fixture
def tracker(residents, groceries, shared_by_all):
    return BalanceTracker(HouseholdSnapshot.from_collections(
        residents=residents,
        expenses=[groceries],
        contributions=shared_by_all,
    ))


class TestChangeFeed:

    def test_delivers_in_subscription_order(self):
        feed = ChangeFeed()
        seen = []
        feed.subscribe(lambda e: seen.append(("first", e.record.key)))
        feed.subscribe(lambda e: seen.append(("second", e.record.key)))

        feed.publish(ChangeEvent.inserted(Resident(id=1, nickname="Alice")))

        assert seen == [("first", 1), ("second", 1)]

    def test_unsubscribe(self):
        feed = ChangeFeed()
        seen = []
        unsubscribe = feed.subscribe(seen.append)
        assert feed.subscriber_count == 1

        unsubscribe()
        unsubscribe()
        feed.publish(ChangeEvent.inserted(Resident(id=1, nickname="Alice")))

        assert seen == []
        assert feed.subscriber_count == 0

    def test_failing_handler_does_not_block_others(self):
        feed = ChangeFeed()
        seen = []

        def broken(event):
            raise RuntimeError("listener exploded")

        feed.subscribe(broken)
        feed.subscribe(seen.append)

        feed.publish(ChangeEvent.inserted(Resident(id=1, nickname="Alice")))

        assert len(seen) == 1

    def test_publish_all_keeps_order(self):
        feed = ChangeFeed()
        seen = []
        feed.subscribe(lambda e: seen.append(e.record.key))

        feed.publish_all([
            ChangeEvent.inserted(Resident(id=2, nickname="Bob")),
            ChangeEvent.inserted(Resident(id=1, nickname="Alice")),
        ])

        assert seen == [2, 1]


class TestBalanceTracker:

    def test_initial_balances(self, tracker):
        assert tracker.balances[(2, 1)] == Decimal("100.00")

    def test_empty_tracker(self):
        tracker = BalanceTracker()
        assert tracker.balances.is_settled
        assert tracker.snapshot == HouseholdSnapshot()

    def test_event_triggers_recompute(self, tracker):
        payment = Payment(id=1, paid_by=2, received_by=1, amount=Decimal("100"))
        matrix = tracker.handle(ChangeEvent.inserted(payment))

        assert (2, 1) not in matrix
        assert tracker.balances is matrix

    def test_listeners_receive_every_recompute(self, tracker):
        received = []
        tracker.add_listener(received.append)

        tracker.handle(ChangeEvent.deleted(Contribution(expense_id=1, resident_id=3)))
        tracker.handle(ChangeEvent.deleted(Contribution(expense_id=1, resident_id=2)))

        assert len(received) == 2
        assert received[0][(2, 1)] == Decimal("150.00")
        assert received[1].is_settled

    def test_load_replaces_snapshot(self, tracker):
        matrix = tracker.load(HouseholdSnapshot())
        assert matrix.is_settled
        assert tracker.snapshot.residents == ()

    def test_attached_tracker_follows_feed(self, tracker):
        feed = ChangeFeed()
        detach = tracker.attach(feed)

        feed.publish(ChangeEvent.deleted(Contribution(expense_id=1, resident_id=2)))
        assert (2, 1) not in tracker.balances

        detach()
        feed.publish(ChangeEvent.inserted(Contribution(expense_id=1, resident_id=2)))
        assert (2, 1) not in tracker.balances

    def test_failing_listener_is_isolated_by_feed(self, tracker):
        """A listener error surfaces through the feed's error log, not to the publisher."""
        feed = ChangeFeed()
        tracker.attach(feed)

        def broken(matrix):
            raise ValueError("render failed")

        tracker.add_listener(broken)
        feed.publish(ChangeEvent.deleted(Contribution(expense_id=1, resident_id=2)))

        assert (2, 1) not in tracker.balances


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
