"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger.
All data flowing through the system must conform to these schemas.
"""

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
from household_ledger.models.ledger import (
    BalanceDirection,
    BalanceMatrix,
    DebtRow,
    ResidentStatement,
    StatementLine,
)
from household_ledger.models.events import (
    ChangeEvent,
    ChangeKind,
    Collection,
    collection_of,
)
from household_ledger.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "Contribution",
    "Expense",
    "NewExpense",
    "NewPayment",
    "NewResident",
    "Payment",
    "PaymentAllocation",
    "Resident",
    # Balances
    "BalanceDirection",
    "BalanceMatrix",
    "DebtRow",
    "ResidentStatement",
    "StatementLine",
    # Change events
    "ChangeEvent",
    "ChangeKind",
    "Collection",
    "collection_of",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
