"""
Shared pytest fixtures for the Household Ledger test suite.

The standard household is Alice (1), Bob (2) and Cara (3).
Expense 1 is a 300.00 purchase Alice fronted and all three share.
"""

from decimal import Decimal

import pytest

from household_ledger.models.records import (
    Contribution,
    Expense,
    Payment,
    Resident,
)
from household_ledger.services.storage import InMemoryAuditStorage, InMemoryHouseholdStorage


@pytest.fixture
def residents():
    return [
        Resident(id=1, nickname="Alice"),
        Resident(id=2, nickname="Bob"),
        Resident(id=3, nickname="Cara"),
    ]


@pytest.fixture
def groceries():
    return Expense(id=1, item="Groceries", price=Decimal("300"), care_of=1, notes="")


@pytest.fixture
def shared_by_all():
    return [
        Contribution(expense_id=1, resident_id=1),
        Contribution(expense_id=1, resident_id=2),
        Contribution(expense_id=1, resident_id=3),
    ]


@pytest.fixture
def bob_pays_alice():
    return Payment(id=1, paid_by=2, received_by=1, amount=Decimal("100"))


@pytest.fixture
def storage():
    return InMemoryHouseholdStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()
