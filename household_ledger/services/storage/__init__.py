"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the
household records. Google Sheets is the shared backend; the in-memory
implementation serves tests and offline use.
"""

from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    HouseholdStorageInterface,
    NotFoundError,
    StorageError,
)
from household_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryHouseholdStorage,
)
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsHouseholdStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "HouseholdStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryHouseholdStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsHouseholdStorage",
]
