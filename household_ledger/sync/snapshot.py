"""
Household Snapshots

A HouseholdSnapshot is the full, immutable state of the five record
collections at one point in time. Change events are folded into a
snapshot to produce the next one; the previous snapshot is never
modified.
"""

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from household_ledger.engine.balances import compute_balances
from household_ledger.models.events import ChangeEvent, ChangeKind, Collection
from household_ledger.models.ledger import BalanceMatrix
from household_ledger.models.records import (
    Contribution,
    Expense,
    Payment,
    PaymentAllocation,
    Resident,
)


# Snapshot attribute holding each collection
_FIELDS = {
    Collection.RESIDENTS: "residents",
    Collection.EXPENSES: "expenses",
    Collection.CONTRIBUTIONS: "contributions",
    Collection.PAYMENTS: "payments",
    Collection.PAYMENT_ALLOCATIONS: "payment_allocations",
}


class HouseholdSnapshot(BaseModel):
    """Immutable view of every household record."""
    model_config = ConfigDict(frozen=True)

    residents: tuple[Resident, ...] = ()
    expenses: tuple[Expense, ...] = ()
    contributions: tuple[Contribution, ...] = ()
    payments: tuple[Payment, ...] = ()
    payment_allocations: tuple[PaymentAllocation, ...] = ()

    @classmethod
    def from_collections(
        cls,
        residents: Iterable[Resident] = (),
        expenses: Iterable[Expense] = (),
        contributions: Iterable[Contribution] = (),
        payments: Iterable[Payment] = (),
        payment_allocations: Iterable[PaymentAllocation] = (),
    ) -> "HouseholdSnapshot":
        """
        Build a snapshot in initial-load order.

        Residents are sorted by nickname, everything else by primary key.
        """
        return cls(
            residents=tuple(sorted(residents, key=lambda r: (r.nickname.lower(), r.id))),
            expenses=tuple(sorted(expenses, key=lambda e: e.id)),
            contributions=tuple(sorted(contributions, key=lambda c: c.key)),
            payments=tuple(sorted(payments, key=lambda p: p.id)),
            payment_allocations=tuple(sorted(payment_allocations, key=lambda a: a.key)),
        )

    def collection(self, name: Collection) -> tuple:
        return getattr(self, _FIELDS[name])

    def resident_ids(self) -> set[int]:
        return {r.id for r in self.residents}

    def expense_ids(self) -> set[int]:
        return {e.id for e in self.expenses}

    def find_resident(self, resident_id: int):
        return next((r for r in self.residents if r.id == resident_id), None)

    def find_expense(self, expense_id: int):
        return next((e for e in self.expenses if e.id == expense_id), None)

    def contributors_of(self, expense_id: int) -> list[int]:
        return [c.resident_id for c in self.contributions if c.expense_id == expense_id]

    def expenses_paid_by(self, payment_id: int) -> list[int]:
        """Expense ids a payment was allocated to."""
        return [a.expense_id for a in self.payment_allocations if a.payment_id == payment_id]

    def counts(self) -> dict[str, int]:
        return {field: len(getattr(self, field)) for field in _FIELDS.values()}

    def compute_balances(self) -> BalanceMatrix:
        """Run the ledger engine over this snapshot."""
        return compute_balances(
            self.residents,
            self.expenses,
            self.contributions,
            self.payments,
        )


def apply_change(snapshot: HouseholdSnapshot, event: ChangeEvent) -> HouseholdSnapshot:
    """
    Fold one change event into a snapshot.

    INSERT and UPDATE both upsert by primary key (INSERT of an existing
    key replaces it, UPDATE of a missing key adds it). DELETE removes by
    key and is a no-op when the key is absent.
    """
    field = _FIELDS[event.collection]
    records = getattr(snapshot, field)
    key = event.record.key

    if event.kind == ChangeKind.DELETE:
        updated = tuple(r for r in records if r.key != key)
    elif any(r.key == key for r in records):
        updated = tuple(event.record if r.key == key else r for r in records)
    else:
        updated = records + (event.record,)

    return snapshot.model_copy(update={field: updated})
