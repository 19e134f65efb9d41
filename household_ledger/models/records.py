"""
Household Record Models

These models mirror the rows kept by the persistence service:
residents, expenses, contributions, payments and payment allocations.

DESIGN DECISION: Stored records are frozen. A snapshot is a value;
changes arrive as events and produce a new snapshot rather than
mutating records in place.

Draft models (NewResident, NewExpense, NewPayment) carry user input
before storage has assigned an id and a creation timestamp. They only
check types; household rules such as positive amounts belong to
HouseholdValidator.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# STORED RECORDS
# =============================================================================

class Resident(BaseModel):
    """A member of the household."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: int = Field(..., description="Primary key")
    nickname: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name, unique per household (case-insensitive)"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def key(self) -> int:
        return self.id


class Expense(BaseModel):
    """
    Something bought for the household.

    care_of is the resident who fronted the money and is owed by
    the contributors.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: int = Field(..., description="Primary key")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    item: str = Field(..., max_length=200, description="What was bought")
    price: Decimal = Field(..., ge=0, description="Total price")
    care_of: int = Field(..., description="Resident id of whoever paid up front")
    notes: str = Field(default="", max_length=1000)

    @property
    def key(self) -> int:
        return self.id


class Contribution(BaseModel):
    """A resident sharing the cost of an expense."""
    model_config = ConfigDict(frozen=True)

    expense_id: int
    resident_id: int

    @property
    def key(self) -> tuple[int, int]:
        return (self.expense_id, self.resident_id)


class Payment(BaseModel):
    """A settlement: paid_by handed amount over to received_by."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: int = Field(..., description="Primary key")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    paid_by: int = Field(..., description="Resident id of the payer")
    received_by: int = Field(..., description="Resident id of the receiver")
    amount: Decimal = Field(..., ge=0)
    notes: str = Field(default="", max_length=1000)

    @property
    def key(self) -> int:
        return self.id


class PaymentAllocation(BaseModel):
    """
    Links a payment to an expense it was meant to settle.

    Informational only: balances are computed from payment amounts,
    not from allocations.
    """
    model_config = ConfigDict(frozen=True)

    payment_id: int
    expense_id: int

    @property
    def key(self) -> tuple[int, int]:
        return (self.payment_id, self.expense_id)


# =============================================================================
# DRAFTS (user input before persistence)
# =============================================================================

class NewResident(BaseModel):
    """Nickname typed into the add-resident form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    nickname: str

    @property
    def normalized_nickname(self) -> str:
        """Lower-cased nickname used for duplicate checks."""
        return self.nickname.lower()


class NewExpense(BaseModel):
    """An expense as entered, with the residents sharing its cost."""
    model_config = ConfigDict(str_strip_whitespace=True)

    item: str
    price: Decimal
    care_of: int
    contributor_ids: list[int] = Field(default_factory=list)
    notes: str = ""

    @field_validator('contributor_ids')
    @classmethod
    def dedupe_contributors(cls, v: list[int]) -> list[int]:
        """Keep first occurrence of each contributor, preserving order."""
        return list(dict.fromkeys(v))


class NewPayment(BaseModel):
    """A payment as entered, with the expenses it settles."""
    model_config = ConfigDict(str_strip_whitespace=True)

    paid_by: int
    received_by: int
    amount: Decimal
    expense_ids: list[int] = Field(default_factory=list)
    notes: str = ""

    @field_validator('expense_ids')
    @classmethod
    def dedupe_expenses(cls, v: list[int]) -> list[int]:
        return list(dict.fromkeys(v))
