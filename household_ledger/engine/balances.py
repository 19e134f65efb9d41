"""
Balance Computation Engine

Turns the household records into a pairwise "who owes whom" matrix.

DESIGN DECISION: The engine is a pure function over full snapshots.
It is recomputed from scratch on every change; there is no incremental
update and no stored state.

GUARANTEES:
- Never raises on dangling references (unknown residents or expenses)
- Never divides by zero (an expense with no contributors changes nothing)
- Antisymmetric output: m[a, b] == -m[b, a]
- No self-pairs, no entries that round to 0.00

Multi-hop debt is NOT simplified: if A owes B and B owes C, both
entries are reported as they are.
"""

from collections import defaultdict
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

import structlog

from household_ledger.models.ledger import BalanceMatrix, Pair
from household_ledger.models.records import Contribution, Expense, Payment, Resident


CENT = Decimal("0.01")
ZERO = Decimal("0")

logger = structlog.get_logger(__name__)


def round_amount(value: Decimal) -> Decimal:
    """
    Round to whole cents.

    ROUND_HALF_UP rounds halves away from zero for both signs,
    so round_amount(-x) == -round_amount(x).
    """
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _zero_matrix(resident_ids: list[int]) -> dict[Pair, Decimal]:
    return {
        (a, b): ZERO
        for a in resident_ids
        for b in resident_ids
        if a != b
    }


def _transfer(tally: dict[Pair, Decimal], debtor: int, creditor: int, amount: Decimal) -> bool:
    """
    Record that debtor owes creditor amount more, in both directions.

    Returns False (and changes nothing) when either side is unknown.
    """
    if (debtor, creditor) not in tally:
        return False
    tally[(debtor, creditor)] += amount
    tally[(creditor, debtor)] -= amount
    return True


def compute_balances(
    residents: Iterable[Resident],
    expenses: Iterable[Expense],
    contributions: Iterable[Contribution],
    payments: Iterable[Payment],
) -> BalanceMatrix:
    """
    Compute the pruned pairwise balance matrix.

    A positive entry m[x, y] means resident x owes resident y that amount.

    Args:
        residents: Every resident of the household
        expenses: Every expense; care_of is owed by the contributors
        contributions: (expense_id, resident_id) cost-sharing links
        payments: Settlements from paid_by to received_by

    Returns:
        A fresh BalanceMatrix with amounts rounded to cents
    """
    resident_ids = list(dict.fromkeys(r.id for r in residents))
    tally = _zero_matrix(resident_ids)

    contributors: dict[int, set[int]] = defaultdict(set)
    for contribution in contributions:
        contributors[contribution.expense_id].add(contribution.resident_id)

    skipped = 0
    expense_count = 0
    for expense in expenses:
        expense_count += 1
        sharing = contributors.get(expense.id, set())
        share = Decimal(expense.price) / (len(sharing) or 1)
        for resident_id in sharing:
            if resident_id == expense.care_of:
                continue
            if not _transfer(tally, resident_id, expense.care_of, share):
                skipped += 1

    payment_count = 0
    for payment in payments:
        payment_count += 1
        if payment.paid_by == payment.received_by:
            continue
        # Paying reduces what paid_by owes received_by
        if not _transfer(tally, payment.paid_by, payment.received_by, -Decimal(payment.amount)):
            skipped += 1

    entries = {}
    for pair, amount in tally.items():
        rounded = round_amount(amount)
        if rounded != ZERO:
            entries[pair] = rounded

    logger.debug(
        "balances_computed",
        residents=len(resident_ids),
        expenses=expense_count,
        payments=payment_count,
        skipped_references=skipped,
        pairs=len(entries),
    )

    return BalanceMatrix(entries)
