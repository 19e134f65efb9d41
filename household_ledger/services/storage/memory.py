"""
In-Memory Storage Implementation

Keeps every collection in process memory with auto-incrementing ids.
Used by the test suite and as the fallback when Google Sheets is not
configured. Behaves like the real backend: cascades deletes and
publishes change events after each write.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from household_ledger.models.audit import AuditEvent
from household_ledger.models.events import ChangeEvent
from household_ledger.models.records import (
    Contribution,
    Expense,
    NewExpense,
    NewPayment,
    NewResident,
    Payment,
    PaymentAllocation,
    Resident,
)
from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    HouseholdStorageInterface,
    NotFoundError,
)
from household_ledger.sync.feed import ChangeFeed


class InMemoryHouseholdStorage(HouseholdStorageInterface):
    """Dictionary-backed household storage."""

    def __init__(self, feed: Optional[ChangeFeed] = None):
        super().__init__(feed)
        self._residents: dict[int, Resident] = {}
        self._expenses: dict[int, Expense] = {}
        self._contributions: dict[tuple[int, int], Contribution] = {}
        self._payments: dict[int, Payment] = {}
        self._allocations: dict[tuple[int, int], PaymentAllocation] = {}
        self._next_ids = {"residents": 1, "expenses": 1, "payments": 1}

    def _next_id(self, table: str) -> int:
        value = self._next_ids[table]
        self._next_ids[table] = value + 1
        return value

    # Reads

    async def list_residents(self) -> list[Resident]:
        return list(self._residents.values())

    async def list_expenses(self) -> list[Expense]:
        return list(self._expenses.values())

    async def list_contributions(self) -> list[Contribution]:
        return list(self._contributions.values())

    async def list_payments(self) -> list[Payment]:
        return list(self._payments.values())

    async def list_payment_allocations(self) -> list[PaymentAllocation]:
        return list(self._allocations.values())

    # Residents

    async def create_resident(self, draft: NewResident) -> Resident:
        resident = Resident(
            id=self._next_id("residents"),
            nickname=draft.nickname,
            created_at=datetime.utcnow(),
        )
        self._residents[resident.id] = resident
        self._notify([ChangeEvent.inserted(resident)])
        return resident

    async def delete_resident(self, resident_id: int) -> bool:
        resident = self._residents.pop(resident_id, None)
        if resident is None:
            return False
        self._notify([ChangeEvent.deleted(resident)])
        return True

    # Expenses

    async def create_expense(self, draft: NewExpense) -> Expense:
        expense = Expense(
            id=self._next_id("expenses"),
            created_at=datetime.utcnow(),
            item=draft.item,
            price=draft.price,
            care_of=draft.care_of,
            notes=draft.notes,
        )
        contributions = [
            Contribution(expense_id=expense.id, resident_id=resident_id)
            for resident_id in draft.contributor_ids
        ]

        self._expenses[expense.id] = expense
        for contribution in contributions:
            self._contributions[contribution.key] = contribution

        self._notify(
            [ChangeEvent.inserted(expense)]
            + [ChangeEvent.inserted(c) for c in contributions]
        )
        return expense

    async def delete_expense(self, expense_id: int) -> bool:
        expense = self._expenses.pop(expense_id, None)
        if expense is None:
            return False

        removed_contributions = [
            self._contributions.pop(key)
            for key in list(self._contributions)
            if key[0] == expense_id
        ]
        removed_allocations = [
            self._allocations.pop(key)
            for key in list(self._allocations)
            if key[1] == expense_id
        ]

        self._notify(
            [ChangeEvent.deleted(c) for c in removed_contributions]
            + [ChangeEvent.deleted(a) for a in removed_allocations]
            + [ChangeEvent.deleted(expense)]
        )
        return True

    # Contributions

    async def create_contribution(self, expense_id: int, resident_id: int) -> Contribution:
        if expense_id not in self._expenses:
            raise NotFoundError(f"Expense not found: {expense_id}")
        contribution = Contribution(expense_id=expense_id, resident_id=resident_id)
        if contribution.key in self._contributions:
            raise DuplicateError(
                f"Resident {resident_id} already contributes to expense {expense_id}"
            )
        self._contributions[contribution.key] = contribution
        self._notify([ChangeEvent.inserted(contribution)])
        return contribution

    async def delete_contribution(self, expense_id: int, resident_id: int) -> bool:
        contribution = self._contributions.pop((expense_id, resident_id), None)
        if contribution is None:
            return False
        self._notify([ChangeEvent.deleted(contribution)])
        return True

    # Payments

    async def create_payment(self, draft: NewPayment) -> Payment:
        missing = [e for e in draft.expense_ids if e not in self._expenses]
        if missing:
            raise NotFoundError(f"Expenses not found: {missing}")

        payment = Payment(
            id=self._next_id("payments"),
            created_at=datetime.utcnow(),
            paid_by=draft.paid_by,
            received_by=draft.received_by,
            amount=draft.amount,
            notes=draft.notes,
        )
        allocations = [
            PaymentAllocation(payment_id=payment.id, expense_id=expense_id)
            for expense_id in draft.expense_ids
        ]

        self._payments[payment.id] = payment
        for allocation in allocations:
            self._allocations[allocation.key] = allocation

        self._notify(
            [ChangeEvent.inserted(payment)]
            + [ChangeEvent.inserted(a) for a in allocations]
        )
        return payment

    async def delete_payment(self, payment_id: int) -> bool:
        payment = self._payments.pop(payment_id, None)
        if payment is None:
            return False

        removed_allocations = [
            self._allocations.pop(key)
            for key in list(self._allocations)
            if key[0] == payment_id
        ]

        self._notify(
            [ChangeEvent.deleted(a) for a in removed_allocations]
            + [ChangeEvent.deleted(payment)]
        )
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
