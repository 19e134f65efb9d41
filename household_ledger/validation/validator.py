"""
Write-Back Validation

DESIGN DECISION: Storage does not enforce household rules such as
nickname uniqueness, so they are checked here, against the current
snapshot, before any write is attempted.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the resident can correct the input.
"""

from typing import Optional

from household_ledger.config import get_settings
from household_ledger.models.records import NewExpense, NewPayment, NewResident
from household_ledger.models.validation import ValidationIssue, ValidationResult
from household_ledger.sync.snapshot import HouseholdSnapshot


def _error(field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=fix,
    )


def _warning(field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
        suggested_fix=fix,
    )


def _result(subject: str, issues: list[ValidationIssue]) -> ValidationResult:
    return ValidationResult(
        subject=subject,
        is_valid=not any(issue.severity == "error" for issue in issues),
        issues=issues,
    )


class HouseholdValidator:
    """
    Validates write requests against the current household snapshot.

    All checks are pure; nothing here touches storage.
    """

    def __init__(self):
        self._settings = get_settings().app

    def validate_resident(
        self,
        draft: NewResident,
        snapshot: HouseholdSnapshot,
    ) -> ValidationResult:
        """
        Checks:
        - Nickname present after trimming
        - Nickname within the configured length
        - No other resident has the same nickname, ignoring case
        """
        issues = []
        nickname = draft.nickname

        if not nickname:
            issues.append(_error(
                "nickname", "missing", "Nickname is required",
                "Type a nickname for the new resident",
            ))
        elif len(nickname) > self._settings.max_nickname_length:
            issues.append(_error(
                "nickname", "too_long",
                f"Nickname is longer than {self._settings.max_nickname_length} characters",
            ))

        if nickname and any(
            r.nickname.strip().lower() == draft.normalized_nickname
            for r in snapshot.residents
        ):
            issues.append(_error(
                "nickname", "duplicate", "That nickname already exists.",
                "Pick a nickname nobody else in the household uses",
            ))

        return _result("resident", issues)

    def validate_expense(
        self,
        draft: NewExpense,
        snapshot: HouseholdSnapshot,
    ) -> ValidationResult:
        """
        Checks:
        - Item described
        - Price positive and not absurd
        - care_of and every contributor are known residents
        - At least one contributor
        """
        issues = []
        resident_ids = snapshot.resident_ids()

        if not draft.item:
            issues.append(_error("item", "missing", "Describe what was bought"))

        if draft.price <= 0:
            issues.append(_error(
                "price", "invalid_value", "Price must be greater than zero",
            ))
        elif draft.price > self._settings.max_expense_price:
            issues.append(_warning(
                "price", "suspicious_value",
                f"Price {draft.price} is unusually high",
                "Check for an extra zero",
            ))

        if draft.care_of not in resident_ids:
            issues.append(_error(
                "care_of", "unknown_reference",
                f"Resident #{draft.care_of} does not exist",
                "Choose who paid for this from the resident list",
            ))

        if not draft.contributor_ids:
            issues.append(_error(
                "contributor_ids", "missing",
                "At least one resident must share this expense",
            ))

        unknown = [rid for rid in draft.contributor_ids if rid not in resident_ids]
        if unknown:
            issues.append(_error(
                "contributor_ids", "unknown_reference",
                f"Unknown contributors: {unknown}",
            ))

        if draft.contributor_ids == [draft.care_of]:
            issues.append(_warning(
                "contributor_ids", "no_effect",
                "Only the payer shares this expense, so nobody owes anything for it",
            ))

        return _result("expense", issues)

    def validate_contribution(
        self,
        expense_id: int,
        resident_id: int,
        snapshot: HouseholdSnapshot,
    ) -> ValidationResult:
        issues = []

        if snapshot.find_expense(expense_id) is None:
            issues.append(_error(
                "expense_id", "unknown_reference", f"Expense #{expense_id} does not exist",
            ))
        if resident_id not in snapshot.resident_ids():
            issues.append(_error(
                "resident_id", "unknown_reference", f"Resident #{resident_id} does not exist",
            ))
        if resident_id in snapshot.contributors_of(expense_id):
            issues.append(_error(
                "resident_id", "duplicate",
                f"Resident #{resident_id} already shares expense #{expense_id}",
            ))

        return _result("contribution", issues)

    def validate_payment(
        self,
        draft: NewPayment,
        snapshot: HouseholdSnapshot,
    ) -> ValidationResult:
        """
        Checks:
        - Amount positive
        - Payer and receiver known and different
        - Allocated expenses exist (allocation itself is optional)
        """
        issues = []
        resident_ids = snapshot.resident_ids()

        if draft.amount <= 0:
            issues.append(_error(
                "amount", "invalid_value", "Amount must be greater than zero",
            ))

        if draft.paid_by not in resident_ids:
            issues.append(_error(
                "paid_by", "unknown_reference", f"Resident #{draft.paid_by} does not exist",
            ))
        if draft.received_by not in resident_ids:
            issues.append(_error(
                "received_by", "unknown_reference",
                f"Resident #{draft.received_by} does not exist",
            ))
        if draft.paid_by == draft.received_by:
            issues.append(_error(
                "received_by", "same_resident", "A resident cannot pay themselves",
            ))

        if not draft.expense_ids:
            issues.append(_warning(
                "expense_ids", "missing",
                "Payment is not linked to any expense",
                "Pick the expenses this payment settles",
            ))
        else:
            known = snapshot.expense_ids()
            unknown = [eid for eid in draft.expense_ids if eid not in known]
            if unknown:
                issues.append(_error(
                    "expense_ids", "unknown_reference", f"Unknown expenses: {unknown}",
                ))

        return _result("payment", issues)

    @staticmethod
    def get_user_friendly_summary(result: ValidationResult) -> str:
        """Short message suitable for showing next to the form."""
        if result.is_valid and not result.issues:
            return "Looks good."

        errors = [i.message for i in result.issues if i.severity == "error"]
        warnings = [i.message for i in result.issues if i.severity == "warning"]

        parts = []
        if errors:
            parts.append("Please fix: " + "; ".join(errors))
        if warnings:
            parts.append("Note: " + "; ".join(warnings))
        return " ".join(parts)
