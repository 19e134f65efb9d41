"""
Tests for write-back validation.

The validator must reject bad input with a clear issue and never
quietly correct it.
"""

from decimal import Decimal

import pytest

from household_ledger.models.records import NewExpense, NewPayment, NewResident
from household_ledger.models.validation import ValidationResult
from household_ledger.sync.snapshot import HouseholdSnapshot
from household_ledger.validation.validator import HouseholdValidator


@pytest.fixture
def validator():
    return HouseholdValidator()


@pytest.fixture
def snapshot(residents, groceries, shared_by_all):
    return HouseholdSnapshot.from_collections(
        residents=residents,
        expenses=[groceries],
        contributions=shared_by_all,
    )


def issue_types(result: ValidationResult) -> set[tuple[str, str]]:
    return {(i.field, i.issue_type) for i in result.issues}


class TestResidentValidation:

    def test_new_nickname_is_accepted(self, validator, snapshot):
        result = validator.validate_resident(NewResident(nickname="Dina"), snapshot)
        assert result.is_valid
        assert result.issues == []

    def test_duplicate_ignores_case_and_whitespace(self, validator, snapshot):
        result = validator.validate_resident(NewResident(nickname="  aLiCe "), snapshot)

        assert not result.is_valid
        assert ("nickname", "duplicate") in issue_types(result)
        assert result.issues[0].message == "That nickname already exists."

    def test_blank_nickname(self, validator, snapshot):
        result = validator.validate_resident(NewResident(nickname="   "), snapshot)
        assert ("nickname", "missing") in issue_types(result)

    def test_overlong_nickname(self, validator, snapshot):
        result = validator.validate_resident(NewResident(nickname="x" * 51), snapshot)
        assert ("nickname", "too_long") in issue_types(result)


class TestExpenseValidation:

    def test_valid_expense(self, validator, snapshot):
        draft = NewExpense(item="Rice", price=Decimal("55.50"), care_of=2, contributor_ids=[1, 2, 3])
        assert validator.validate_expense(draft, snapshot).is_valid

    def test_missing_fields(self, validator, snapshot):
        draft = NewExpense(item=" ", price=Decimal("0"), care_of=9, contributor_ids=[])
        result = validator.validate_expense(draft, snapshot)

        assert not result.is_valid
        assert issue_types(result) >= {
            ("item", "missing"),
            ("price", "invalid_value"),
            ("care_of", "unknown_reference"),
            ("contributor_ids", "missing"),
        }
        assert result.error_count == 4

    def test_unknown_contributor(self, validator, snapshot):
        draft = NewExpense(item="Rice", price=Decimal("10"), care_of=1, contributor_ids=[2, 8])
        result = validator.validate_expense(draft, snapshot)
        assert ("contributor_ids", "unknown_reference") in issue_types(result)

    def test_huge_price_is_only_a_warning(self, validator, snapshot):
        draft = NewExpense(item="TV", price=Decimal("5000000"), care_of=1, contributor_ids=[1, 2])
        result = validator.validate_expense(draft, snapshot)

        assert result.is_valid
        assert result.warnings == [f"Price {Decimal('5000000')} is unusually high"]

    def test_negative_price(self, validator, snapshot):
        draft = NewExpense(item="Refund", price=Decimal("-40"), care_of=1, contributor_ids=[1, 2])
        result = validator.validate_expense(draft, snapshot)

        assert not result.is_valid
        assert ("price", "invalid_value") in issue_types(result)

    def test_payer_only_expense_warns(self, validator, snapshot):
        draft = NewExpense(item="Snack", price=Decimal("3"), care_of=1, contributor_ids=[1])
        result = validator.validate_expense(draft, snapshot)

        assert result.is_valid
        assert ("contributor_ids", "no_effect") in issue_types(result)

    def test_duplicate_contributors_are_collapsed(self):
        draft = NewExpense(item="Rice", price=Decimal("10"), care_of=1, contributor_ids=[2, 3, 2])
        assert draft.contributor_ids == [2, 3]


class TestContributionValidation:

    def test_duplicate(self, validator, snapshot):
        result = validator.validate_contribution(1, 2, snapshot)
        assert ("resident_id", "duplicate") in issue_types(result)

    def test_unknown_expense_and_resident(self, validator, snapshot):
        result = validator.validate_contribution(7, 9, snapshot)
        assert issue_types(result) == {
            ("expense_id", "unknown_reference"),
            ("resident_id", "unknown_reference"),
        }

    def test_new_contributor(self, validator, residents, groceries):
        snapshot = HouseholdSnapshot.from_collections(residents=residents, expenses=[groceries])
        assert validator.validate_contribution(1, 3, snapshot).is_valid


class TestPaymentValidation:

    def test_valid_payment(self, validator, snapshot):
        draft = NewPayment(paid_by=2, received_by=1, amount=Decimal("100"), expense_ids=[1])
        result = validator.validate_payment(draft, snapshot)
        assert result.is_valid
        assert result.issues == []

    def test_zero_amount(self, validator, snapshot):
        draft = NewPayment(paid_by=2, received_by=1, amount=Decimal("0"), expense_ids=[1])
        result = validator.validate_payment(draft, snapshot)
        assert ("amount", "invalid_value") in issue_types(result)

    def test_negative_amount(self, validator, snapshot):
        draft = NewPayment(paid_by=2, received_by=1, amount=Decimal("-5"), expense_ids=[1])
        result = validator.validate_payment(draft, snapshot)
        assert ("amount", "invalid_value") in issue_types(result)

    def test_paying_yourself(self, validator, snapshot):
        draft = NewPayment(paid_by=2, received_by=2, amount=Decimal("5"), expense_ids=[1])
        result = validator.validate_payment(draft, snapshot)
        assert ("received_by", "same_resident") in issue_types(result)

    def test_unknown_residents(self, validator, snapshot):
        draft = NewPayment(paid_by=8, received_by=9, amount=Decimal("5"), expense_ids=[1])
        result = validator.validate_payment(draft, snapshot)
        assert issue_types(result) == {
            ("paid_by", "unknown_reference"),
            ("received_by", "unknown_reference"),
        }

    def test_unlinked_payment_is_a_warning(self, validator, snapshot):
        draft = NewPayment(paid_by=2, received_by=1, amount=Decimal("5"))
        result = validator.validate_payment(draft, snapshot)

        assert result.is_valid
        assert result.warnings == ["Payment is not linked to any expense"]

    def test_unknown_expense(self, validator, snapshot):
        draft = NewPayment(paid_by=2, received_by=1, amount=Decimal("5"), expense_ids=[4])
        result = validator.validate_payment(draft, snapshot)
        assert not result.is_valid


class TestSummary:

    def test_clean_result(self):
        result = ValidationResult(subject="payment", is_valid=True)
        assert HouseholdValidator.get_user_friendly_summary(result) == "Looks good."

    def test_errors_and_warnings(self, validator, snapshot):
        draft = NewPayment(paid_by=2, received_by=2, amount=Decimal("5"))
        result = validator.validate_payment(draft, snapshot)

        summary = HouseholdValidator.get_user_friendly_summary(result)
        assert summary.startswith("Please fix: A resident cannot pay themselves")
        assert "Note: Payment is not linked to any expense" in summary


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
