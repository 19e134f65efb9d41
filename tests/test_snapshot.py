"""
Tests for snapshot folding.

Folding a stream of change events must always land on the same
balances as computing them directly from the resulting records.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from household_ledger.models.events import ChangeEvent, ChangeKind, Collection
from household_ledger.models.records import (
    Contribution,
    Expense,
    Payment,
    PaymentAllocation,
    Resident,
)
from household_ledger.sync.snapshot import HouseholdSnapshot, apply_change


@pytest.fixture
def snapshot(residents, groceries, shared_by_all):
    return HouseholdSnapshot.from_collections(
        residents=residents,
        expenses=[groceries],
        contributions=shared_by_all,
    )


class TestFromCollections:

    def test_residents_sorted_by_nickname(self):
        snap = HouseholdSnapshot.from_collections(residents=[
            Resident(id=1, nickname="zed"),
            Resident(id=2, nickname="Amy"),
            Resident(id=3, nickname="bea"),
        ])
        assert [r.nickname for r in snap.residents] == ["Amy", "bea", "zed"]

    def test_other_collections_sorted_by_key(self):
        snap = HouseholdSnapshot.from_collections(
            expenses=[
                Expense(id=5, item="B", price=Decimal("1"), care_of=1),
                Expense(id=2, item="A", price=Decimal("1"), care_of=1),
            ],
            contributions=[
                Contribution(expense_id=5, resident_id=1),
                Contribution(expense_id=2, resident_id=3),
                Contribution(expense_id=2, resident_id=1),
            ],
        )
        assert [e.id for e in snap.expenses] == [2, 5]
        assert [c.key for c in snap.contributions] == [(2, 1), (2, 3), (5, 1)]

    def test_lookups(self, snapshot):
        assert snapshot.resident_ids() == {1, 2, 3}
        assert snapshot.expense_ids() == {1}
        assert snapshot.find_resident(2).nickname == "Bob"
        assert snapshot.find_resident(9) is None
        assert snapshot.find_expense(1).item == "Groceries"
        assert sorted(snapshot.contributors_of(1)) == [1, 2, 3]
        assert snapshot.counts() == {
            "residents": 3,
            "expenses": 1,
            "contributions": 3,
            "payments": 0,
            "payment_allocations": 0,
        }

    def test_snapshot_is_frozen(self, snapshot):
        with pytest.raises(ValidationError):
            snapshot.residents = ()


class TestApplyChange:

    def test_insert_appends(self, snapshot):
        dina = Resident(id=4, nickname="Dina")
        updated = apply_change(snapshot, ChangeEvent.inserted(dina))

        assert updated.residents[-1] == dina
        assert len(snapshot.residents) == 3

    def test_insert_of_existing_key_replaces(self, snapshot):
        renamed = Resident(id=2, nickname="Bobby")
        updated = apply_change(snapshot, ChangeEvent.inserted(renamed))

        assert len(updated.residents) == 3
        assert updated.find_resident(2).nickname == "Bobby"

    def test_update_replaces_in_place(self, snapshot):
        pricier = Expense(id=1, item="Groceries", price=Decimal("600"), care_of=1)
        updated = apply_change(snapshot, ChangeEvent.updated(pricier))

        assert updated.expenses == (pricier,)
        assert updated.compute_balances()[(2, 1)] == Decimal("200.00")

    def test_update_of_missing_key_adds(self, snapshot):
        payment = Payment(id=7, paid_by=2, received_by=1, amount=Decimal("10"))
        updated = apply_change(snapshot, ChangeEvent.updated(payment))
        assert updated.payments == (payment,)

    def test_delete_by_key(self, snapshot):
        event = ChangeEvent.deleted(Contribution(expense_id=1, resident_id=2))
        updated = apply_change(snapshot, event)

        assert sorted(updated.contributors_of(1)) == [1, 3]
        assert (2, 1) not in updated.compute_balances()

    def test_delete_of_missing_key_is_noop(self, snapshot):
        event = ChangeEvent.deleted(Expense(id=99, item="", price=Decimal("0"), care_of=1))
        assert apply_change(snapshot, event) == snapshot

    def test_previous_snapshot_untouched(self, snapshot):
        before = snapshot.compute_balances()
        apply_change(snapshot, ChangeEvent.deleted(Expense(
            id=1, item="Groceries", price=Decimal("300"), care_of=1,
        )))
        assert snapshot.compute_balances() == before

    def test_allocation_events(self, snapshot):
        link = PaymentAllocation(payment_id=3, expense_id=1)
        updated = apply_change(snapshot, ChangeEvent.inserted(link))
        assert updated.expenses_paid_by(3) == [1]


class TestFolding:

    def test_folded_events_match_direct_computation(self, residents):
        events = [ChangeEvent.inserted(r) for r in residents] + [
            ChangeEvent.inserted(Expense(id=1, item="Rent", price=Decimal("900"), care_of=1)),
            ChangeEvent.inserted(Contribution(expense_id=1, resident_id=1)),
            ChangeEvent.inserted(Contribution(expense_id=1, resident_id=2)),
            ChangeEvent.inserted(Contribution(expense_id=1, resident_id=3)),
            ChangeEvent.inserted(Payment(id=1, paid_by=3, received_by=1, amount=Decimal("100"))),
            ChangeEvent.inserted(Expense(id=2, item="Snacks", price=Decimal("45"), care_of=2)),
            ChangeEvent.inserted(Contribution(expense_id=2, resident_id=3)),
            ChangeEvent.deleted(Contribution(expense_id=1, resident_id=1)),
        ]

        snap = HouseholdSnapshot()
        for event in events:
            snap = apply_change(snap, event)

        direct = HouseholdSnapshot.from_collections(
            residents=snap.residents,
            expenses=snap.expenses,
            contributions=snap.contributions,
            payments=snap.payments,
        ).compute_balances()

        assert snap.compute_balances() == direct
        # Rent now split two ways: Bob and Cara each owe 450
        assert direct[(2, 1)] == Decimal("450.00")
        assert direct[(3, 1)] == Decimal("350.00")
        assert direct[(3, 2)] == Decimal("45.00")


class TestChangeEvent:

    def test_collection_is_inferred(self, groceries):
        event = ChangeEvent.inserted(groceries)
        assert event.collection == Collection.EXPENSES
        assert event.kind == ChangeKind.INSERT

    def test_allocations_use_payment_for_collection(self):
        event = ChangeEvent.deleted(PaymentAllocation(payment_id=1, expense_id=1))
        assert event.collection.value == "payment_for"

    def test_record_must_match_collection(self, groceries):
        with pytest.raises(ValidationError):
            ChangeEvent(collection=Collection.PAYMENTS, kind=ChangeKind.INSERT, record=groceries)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
