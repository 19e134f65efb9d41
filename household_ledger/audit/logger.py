"""
Audit Logger

DESIGN DECISION: Every write-back to the household records is logged.
This provides:
1. Traceability of who added or removed what
2. Debugging capability when storage rejects a write
3. A shared history residents can inspect

The audit logger:
- Is async so it sits naturally beside async storage calls
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from household_ledger.config import AppSettings, get_settings
from household_ledger.models.audit import AuditEvent, AuditEventBuilder
from household_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def resolve_log_level(app: AppSettings) -> str:
    """DEBUG whenever debug_mode is on, otherwise the configured log_level."""
    return "DEBUG" if app.debug_mode else app.log_level


def configure_logging(level: Optional[str] = None) -> None:
    """
    Route structured logs to stderr at the configured level.

    Falls back to the AppSettings level when no level is given.
    """
    level = level or resolve_log_level(get_settings().app)
    logging.basicConfig(format="%(message)s", level=getattr(logging, level))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and resident visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_resident_added(
        self,
        resident_id: int,
        nickname: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.resident_added(
            resident_id=resident_id,
            nickname=nickname,
            correlation_id=correlation_id,
        ))

    async def log_resident_removed(
        self,
        resident_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.resident_removed(
            resident_id=resident_id,
            correlation_id=correlation_id,
        ))

    async def log_expense_added(
        self,
        expense_id: int,
        item: str,
        price: Decimal,
        care_of: int,
        contributor_ids: list[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_added(
            expense_id=expense_id,
            item=item,
            price=price,
            care_of=care_of,
            contributor_ids=contributor_ids,
            correlation_id=correlation_id,
        ))

    async def log_expense_removed(
        self,
        expense_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_removed(
            expense_id=expense_id,
            correlation_id=correlation_id,
        ))

    async def log_contribution_changed(
        self,
        expense_id: int,
        resident_id: int,
        added: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.contribution_changed(
            expense_id=expense_id,
            resident_id=resident_id,
            added=added,
            correlation_id=correlation_id,
        ))

    async def log_payment_added(
        self,
        payment_id: int,
        paid_by: int,
        received_by: int,
        amount: Decimal,
        expense_ids: list[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payment_added(
            payment_id=payment_id,
            paid_by=paid_by,
            received_by=received_by,
            amount=amount,
            expense_ids=expense_ids,
            correlation_id=correlation_id,
        ))

    async def log_payment_removed(
        self,
        payment_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payment_removed(
            payment_id=payment_id,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        subject: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a write request rejected before reaching storage."""
        await self.log(AuditEventBuilder.validation_failed(
            subject=subject,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_write_failed(
        self,
        entity_type: str,
        operation: str,
        error_message: str,
        entity_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a write storage refused."""
        await self.log(AuditEventBuilder.write_failed(
            entity_type=entity_type,
            operation=operation,
            error_message=error_message,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    async def log_snapshot_loaded(
        self,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.snapshot_loaded(
            counts=counts,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a write-back and pass it through
    all subsequent audit calls.
    """
    return uuid4()
