"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the persistence
service that owns the household records. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing and offline use
3. Keep balance logic decoupled from storage implementation

Every implementation publishes a ChangeEvent on its feed for each row
change the backend has confirmed. When a multi-row write fails part-way,
the rows already changed are still published before the error is raised.
"""

from abc import ABC, abstractmethod
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
from household_ledger.sync.feed import ChangeFeed
from household_ledger.sync.snapshot import HouseholdSnapshot


class HouseholdStorageInterface(ABC):
    """
    Abstract interface for household record storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self._feed = feed or ChangeFeed()

    @property
    def feed(self) -> ChangeFeed:
        """Change notifications for confirmed writes."""
        return self._feed

    def _notify(self, events: list[ChangeEvent]) -> None:
        self._feed.publish_all(events)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_residents(self) -> list[Resident]:
        pass

    @abstractmethod
    async def list_expenses(self) -> list[Expense]:
        pass

    @abstractmethod
    async def list_contributions(self) -> list[Contribution]:
        pass

    @abstractmethod
    async def list_payments(self) -> list[Payment]:
        pass

    @abstractmethod
    async def list_payment_allocations(self) -> list[PaymentAllocation]:
        pass

    async def load_snapshot(self) -> HouseholdSnapshot:
        """
        Load every collection in initial-load order.

        Residents come back sorted by nickname, the rest by id.
        """
        return HouseholdSnapshot.from_collections(
            residents=await self.list_residents(),
            expenses=await self.list_expenses(),
            contributions=await self.list_contributions(),
            payments=await self.list_payments(),
            payment_allocations=await self.list_payment_allocations(),
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_resident(self, draft: NewResident) -> Resident:
        """
        Insert a resident.

        Storage does not enforce nickname uniqueness; that is
        checked client-side before calling this.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_resident(self, resident_id: int) -> bool:
        """
        Delete a resident by ID.

        Returns:
            True if a row was deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def create_expense(self, draft: NewExpense) -> Expense:
        """
        Insert an expense and one contribution per contributor id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: int) -> bool:
        """
        Delete an expense with its contributions and payment allocations.

        Returns:
            True if the expense existed
        """
        pass

    @abstractmethod
    async def create_contribution(self, expense_id: int, resident_id: int) -> Contribution:
        """
        Add a resident to an expense's contributors.

        Raises:
            NotFoundError: If the expense does not exist
            DuplicateError: If the contribution already exists
        """
        pass

    @abstractmethod
    async def delete_contribution(self, expense_id: int, resident_id: int) -> bool:
        pass

    @abstractmethod
    async def create_payment(self, draft: NewPayment) -> Payment:
        """
        Insert a payment and its allocations to expenses.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_payment(self, payment_id: int) -> bool:
        """
        Delete a payment with its allocations.

        Returns:
            True if the payment existed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
