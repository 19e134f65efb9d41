"""
Main Orchestrator for Household Ledger

This module ties together all the components and defines the
write-back flows residents use:
1. Residents (add / remove)
2. Expenses and their contributors (add / remove)
3. Payments (add / remove)

and the read side: current balances, debt rows and statements.

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches storage without passing validation
- Balances only ever reflect writes storage has confirmed
- Every write, accepted or refused, is audited
"""

from decimal import Decimal
from typing import Optional, TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from household_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from household_ledger.config import get_settings
from household_ledger.engine.summary import debt_rows, resident_statements
from household_ledger.models.ledger import BalanceMatrix, DebtRow, ResidentStatement
from household_ledger.models.records import (
    Contribution,
    Expense,
    NewExpense,
    NewPayment,
    NewResident,
    Payment,
    Resident,
)
from household_ledger.models.validation import ValidationIssue, ValidationResult
from household_ledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsHouseholdStorage,
    HouseholdStorageInterface,
    InMemoryHouseholdStorage,
    StorageError,
)
from household_ledger.sync import BalanceTracker, HouseholdSnapshot
from household_ledger.validation import HouseholdValidator


logger = structlog.get_logger(__name__)

DraftT = TypeVar("DraftT", bound=BaseModel)


class ValidationFailedError(Exception):
    """A write request was rejected before reaching storage."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = [i.message for i in result.issues if i.severity == "error"]
        super().__init__(f"Invalid {result.subject}: " + "; ".join(messages))


class HouseholdFlow:
    """
    Orchestrates household write-backs and balance reads.

    Flow for every write:
    1. Validate against the tracker's current snapshot
    2. Write to storage (storage publishes change events on success)
    3. The tracker folds the events and recomputes balances
    4. Audit the outcome

    If storage refuses a write, nothing is published and balances
    stay as they were. If it fails part-way, only the rows it did
    change are published, so balances match what storage holds.
    """

    def __init__(
        self,
        storage: HouseholdStorageInterface,
        validator: Optional[HouseholdValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        tracker: Optional[BalanceTracker] = None,
    ):
        self._storage = storage
        self._validator = validator or HouseholdValidator()
        self._audit_logger = audit_logger
        self._tracker = tracker or BalanceTracker()
        self._unsubscribe = self._tracker.attach(storage.feed)

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def tracker(self) -> BalanceTracker:
        return self._tracker

    @property
    def snapshot(self) -> HouseholdSnapshot:
        return self._tracker.snapshot

    @property
    def balances(self) -> BalanceMatrix:
        return self._tracker.balances

    def debt_rows(self) -> list[DebtRow]:
        return debt_rows(self._tracker.balances)

    def statements(self) -> list[ResidentStatement]:
        return resident_statements(self._tracker.balances, self._tracker.snapshot.residents)

    async def load(self, correlation_id: Optional[UUID] = None) -> BalanceMatrix:
        """Pull a full snapshot from storage and recompute balances."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            snapshot = await self._storage.load_snapshot()
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="storage",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        balances = self._tracker.load(snapshot)

        if self._audit_logger:
            await self._audit_logger.log_snapshot_loaded(
                counts=snapshot.counts(),
                correlation_id=correlation_id,
            )
        return balances

    def close(self) -> None:
        """Stop following the storage change feed."""
        self._unsubscribe()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _check(self, result: ValidationResult, correlation_id: UUID) -> None:
        if result.is_valid:
            return
        await self._audit_rejection(result, correlation_id)
        raise ValidationFailedError(result)

    async def _audit_rejection(self, result: ValidationResult, correlation_id: UUID) -> None:
        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
            ]
            await self._audit_logger.log_validation_failed(
                subject=result.subject,
                issues=issues,
                correlation_id=correlation_id,
            )

    async def _draft(
        self,
        model: type[DraftT],
        subject: str,
        correlation_id: UUID,
        **fields,
    ) -> DraftT:
        """
        Build a draft from raw input.

        Input pydantic cannot coerce (e.g. a price that is not a number)
        is reported and audited like any other validation failure.
        """
        try:
            return model(**fields)
        except PydanticValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or subject,
                    issue_type="invalid_value",
                    message=error["msg"],
                    severity="error",
                )
                for error in e.errors()
            ]
            result = ValidationResult(subject=subject, is_valid=False, issues=issues)
            await self._audit_rejection(result, correlation_id)
            raise ValidationFailedError(result) from e

    async def _write_failed(
        self,
        entity_type: str,
        operation: str,
        error: StorageError,
        correlation_id: UUID,
        entity_id: Optional[int] = None,
    ) -> None:
        logger.warning(
            "write_failed",
            entity_type=entity_type,
            operation=operation,
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_write_failed(
                entity_type=entity_type,
                operation=operation,
                error_message=str(error),
                entity_id=entity_id,
                correlation_id=correlation_id,
            )

    # -------------------------------------------------------------------------
    # Residents
    # -------------------------------------------------------------------------

    async def add_resident(
        self,
        nickname: str,
        correlation_id: Optional[UUID] = None,
    ) -> Resident:
        """
        Add a resident after the case-insensitive duplicate check.

        Raises:
            ValidationFailedError: Empty, too long or duplicate nickname
            StorageError: Storage refused the write
        """
        correlation_id = correlation_id or create_correlation_id()
        draft = await self._draft(
            NewResident, "resident", correlation_id,
            nickname=nickname,
        )

        await self._check(
            self._validator.validate_resident(draft, self.snapshot),
            correlation_id,
        )

        try:
            resident = await self._storage.create_resident(draft)
        except StorageError as e:
            await self._write_failed("resident", "add", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_resident_added(
                resident_id=resident.id,
                nickname=resident.nickname,
                correlation_id=correlation_id,
            )
        return resident

    async def remove_resident(
        self,
        resident_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Remove a resident.

        Expenses and payments that still reference the resident are
        left in place; the balance engine ignores the dangling ids.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            removed = await self._storage.delete_resident(resident_id)
        except StorageError as e:
            await self._write_failed("resident", "remove", e, correlation_id, resident_id)
            raise

        if removed and self._audit_logger:
            await self._audit_logger.log_resident_removed(
                resident_id=resident_id,
                correlation_id=correlation_id,
            )
        return removed

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def add_expense(
        self,
        item: str,
        price: Decimal,
        care_of: int,
        contributor_ids: list[int],
        notes: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Add an expense fronted by care_of and shared by contributor_ids.

        Raises:
            ValidationFailedError: Bad input or unknown residents
            StorageError: Storage refused the write
        """
        correlation_id = correlation_id or create_correlation_id()
        draft = await self._draft(
            NewExpense, "expense", correlation_id,
            item=item,
            price=price,
            care_of=care_of,
            contributor_ids=contributor_ids,
            notes=notes,
        )

        await self._check(
            self._validator.validate_expense(draft, self.snapshot),
            correlation_id,
        )

        try:
            expense = await self._storage.create_expense(draft)
        except StorageError as e:
            await self._write_failed("expense", "add", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_added(
                expense_id=expense.id,
                item=expense.item,
                price=expense.price,
                care_of=expense.care_of,
                contributor_ids=draft.contributor_ids,
                correlation_id=correlation_id,
            )
        return expense

    async def remove_expense(
        self,
        expense_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Remove an expense together with its contributors and payment links."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            removed = await self._storage.delete_expense(expense_id)
        except StorageError as e:
            await self._write_failed("expense", "remove", e, correlation_id, expense_id)
            raise

        if removed and self._audit_logger:
            await self._audit_logger.log_expense_removed(
                expense_id=expense_id,
                correlation_id=correlation_id,
            )
        return removed

    async def add_contribution(
        self,
        expense_id: int,
        resident_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> Contribution:
        correlation_id = correlation_id or create_correlation_id()

        await self._check(
            self._validator.validate_contribution(expense_id, resident_id, self.snapshot),
            correlation_id,
        )

        try:
            contribution = await self._storage.create_contribution(expense_id, resident_id)
        except StorageError as e:
            await self._write_failed("contribution", "add", e, correlation_id, expense_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_contribution_changed(
                expense_id=expense_id,
                resident_id=resident_id,
                added=True,
                correlation_id=correlation_id,
            )
        return contribution

    async def remove_contribution(
        self,
        expense_id: int,
        resident_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()

        try:
            removed = await self._storage.delete_contribution(expense_id, resident_id)
        except StorageError as e:
            await self._write_failed("contribution", "remove", e, correlation_id, expense_id)
            raise

        if removed and self._audit_logger:
            await self._audit_logger.log_contribution_changed(
                expense_id=expense_id,
                resident_id=resident_id,
                added=False,
                correlation_id=correlation_id,
            )
        return removed

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    async def add_payment(
        self,
        paid_by: int,
        received_by: int,
        amount: Decimal,
        expense_ids: Optional[list[int]] = None,
        notes: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> Payment:
        """
        Record that paid_by handed amount over to received_by.

        Raises:
            ValidationFailedError: Bad amount, unknown or identical residents
            StorageError: Storage refused the write
        """
        correlation_id = correlation_id or create_correlation_id()
        draft = await self._draft(
            NewPayment, "payment", correlation_id,
            paid_by=paid_by,
            received_by=received_by,
            amount=amount,
            expense_ids=expense_ids or [],
            notes=notes,
        )

        await self._check(
            self._validator.validate_payment(draft, self.snapshot),
            correlation_id,
        )

        try:
            payment = await self._storage.create_payment(draft)
        except StorageError as e:
            await self._write_failed("payment", "add", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_payment_added(
                payment_id=payment.id,
                paid_by=payment.paid_by,
                received_by=payment.received_by,
                amount=payment.amount,
                expense_ids=draft.expense_ids,
                correlation_id=correlation_id,
            )
        return payment

    async def remove_payment(
        self,
        payment_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Remove a payment and its links to expenses."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            removed = await self._storage.delete_payment(payment_id)
        except StorageError as e:
            await self._write_failed("payment", "remove", e, correlation_id, payment_id)
            raise

        if removed and self._audit_logger:
            await self._audit_logger.log_payment_removed(
                payment_id=payment_id,
                correlation_id=correlation_id,
            )
        return removed


def create_app_components(
    use_storage: bool = True,
) -> tuple[HouseholdFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (household_flow, sheets_client)
    """
    configure_logging()

    sheets_client = None
    storage: HouseholdStorageInterface
    audit_logger: AuditLogger

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsHouseholdStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            storage = InMemoryHouseholdStorage()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        storage = InMemoryHouseholdStorage()
        audit_logger = AuditLogger()  # Local-only logging

    flow = HouseholdFlow(
        storage=storage,
        audit_logger=audit_logger,
    )

    app_settings = get_settings().app
    logger.info(
        "app_components_created",
        environment=app_settings.app_environment,
        debug_mode=app_settings.debug_mode,
        storage=type(storage).__name__,
    )

    return flow, sheets_client
