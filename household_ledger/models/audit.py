"""
Audit Models for Household Ledger

Every write-back to the household records is logged for audit purposes.
This provides:
1. Traceability of who added or removed what
2. Debugging information when a write is rejected
3. A way to reconstruct how balances came to be

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Residents
    RESIDENT_ADDED = "resident_added"
    RESIDENT_REMOVED = "resident_removed"

    # Expenses and their contributors
    EXPENSE_ADDED = "expense_added"
    EXPENSE_REMOVED = "expense_removed"
    CONTRIBUTION_ADDED = "contribution_added"
    CONTRIBUTION_REMOVED = "contribution_removed"

    # Payments
    PAYMENT_ADDED = "payment_added"
    PAYMENT_REMOVED = "payment_removed"

    # Validation and persistence
    VALIDATION_FAILED = "validation_failed"
    WRITE_FAILED = "write_failed"

    # Sync
    SNAPSHOT_LOADED = "snapshot_loaded"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every write-back creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of record (e.g., 'resident', 'expense', 'payment')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="Primary key of the record this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a failed write and its retry)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id is not None else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.resident_added(resident_id, nickname)
        event = AuditEventBuilder.write_failed("expense", "create", str(exc))
    """

    @staticmethod
    def resident_added(
        resident_id: int,
        nickname: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESIDENT_ADDED,
            entity_type="resident",
            entity_id=resident_id,
            correlation_id=correlation_id,
            description=f"Resident added: {nickname}",
            details={"nickname": nickname},
            is_user_action=True,
        )

    @staticmethod
    def resident_removed(
        resident_id: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESIDENT_REMOVED,
            entity_type="resident",
            entity_id=resident_id,
            correlation_id=correlation_id,
            description=f"Resident #{resident_id} removed",
            is_user_action=True,
        )

    @staticmethod
    def expense_added(
        expense_id: int,
        item: str,
        price: Decimal,
        care_of: int,
        contributor_ids: list[int],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense added: {item} - {price}",
            details={
                "item": item,
                "price": str(price),
                "care_of": care_of,
                "contributor_ids": contributor_ids,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_removed(
        expense_id: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REMOVED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense #{expense_id} removed with its contributors",
            is_user_action=True,
        )

    @staticmethod
    def contribution_changed(
        expense_id: int,
        resident_id: int,
        added: bool,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        event_type = (
            AuditEventType.CONTRIBUTION_ADDED
            if added
            else AuditEventType.CONTRIBUTION_REMOVED
        )
        verb = "now shares" if added else "no longer shares"
        return AuditEvent(
            event_type=event_type,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Resident #{resident_id} {verb} expense #{expense_id}",
            details={"resident_id": resident_id},
            is_user_action=True,
        )

    @staticmethod
    def payment_added(
        payment_id: int,
        paid_by: int,
        received_by: int,
        amount: Decimal,
        expense_ids: list[int],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_ADDED,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Payment added: #{paid_by} paid #{received_by} {amount}",
            details={
                "paid_by": paid_by,
                "received_by": received_by,
                "amount": str(amount),
                "expense_ids": expense_ids,
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_removed(
        payment_id: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_REMOVED,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Payment #{payment_id} removed",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        subject: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=subject,
            correlation_id=correlation_id,
            description=f"{subject.capitalize()} rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def write_failed(
        entity_type: str,
        operation: str,
        error_message: str,
        entity_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Could not {operation} {entity_type}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def snapshot_loaded(
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description="Household snapshot loaded",
            details=counts,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
