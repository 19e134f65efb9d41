"""Validation package."""

from household_ledger.validation.validator import HouseholdValidator

__all__ = ["HouseholdValidator"]
