"""
Change Event Models

The persistence service notifies subscribers whenever a row is
inserted, updated or deleted. Each notification becomes a ChangeEvent
naming the collection, the kind of change and the affected record.
"""

from enum import Enum
from typing import Union

from pydantic import BaseModel, model_validator

from household_ledger.models.records import (
    Contribution,
    Expense,
    Payment,
    PaymentAllocation,
    Resident,
)


class Collection(str, Enum):
    """Record collections kept by the persistence service."""
    RESIDENTS = "residents"
    EXPENSES = "expenses"
    CONTRIBUTIONS = "contributions"
    PAYMENTS = "payments"
    PAYMENT_ALLOCATIONS = "payment_for"


class ChangeKind(str, Enum):
    """What happened to the row."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


Record = Union[Resident, Expense, Contribution, Payment, PaymentAllocation]

RECORD_TYPES: dict[Collection, type] = {
    Collection.RESIDENTS: Resident,
    Collection.EXPENSES: Expense,
    Collection.CONTRIBUTIONS: Contribution,
    Collection.PAYMENTS: Payment,
    Collection.PAYMENT_ALLOCATIONS: PaymentAllocation,
}


class ChangeEvent(BaseModel):
    """
    A single row change.

    For DELETE events only the key fields of the record matter.
    """

    collection: Collection
    kind: ChangeKind
    record: Record

    @model_validator(mode='after')
    def check_record_type(self) -> 'ChangeEvent':
        """The record must belong to the named collection."""
        expected = RECORD_TYPES[self.collection]
        if not isinstance(self.record, expected):
            raise ValueError(
                f"{self.collection.value} events carry {expected.__name__} records, "
                f"got {type(self.record).__name__}"
            )
        return self

    @classmethod
    def inserted(cls, record: Record) -> 'ChangeEvent':
        return cls(collection=collection_of(record), kind=ChangeKind.INSERT, record=record)

    @classmethod
    def updated(cls, record: Record) -> 'ChangeEvent':
        return cls(collection=collection_of(record), kind=ChangeKind.UPDATE, record=record)

    @classmethod
    def deleted(cls, record: Record) -> 'ChangeEvent':
        return cls(collection=collection_of(record), kind=ChangeKind.DELETE, record=record)


def collection_of(record: Record) -> Collection:
    """Collection a record belongs to."""
    for collection, record_type in RECORD_TYPES.items():
        if isinstance(record, record_type):
            return collection
    raise TypeError(f"Not a household record: {type(record).__name__}")
