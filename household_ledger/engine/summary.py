"""
Balance summaries.

Flattened, display-ready views of a BalanceMatrix: a debtor/creditor
table and per-resident "to pay / to collect" statements.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Optional

from household_ledger.config import get_settings
from household_ledger.models.ledger import (
    BalanceDirection,
    BalanceMatrix,
    DebtRow,
    ResidentStatement,
    StatementLine,
)
from household_ledger.models.records import Resident


def debt_rows(matrix: BalanceMatrix) -> list[DebtRow]:
    """Positive entries only (x owes y), largest amount first."""
    rows = [
        DebtRow(debtor_id=debtor, creditor_id=creditor, amount=amount)
        for (debtor, creditor), amount in matrix.items()
        if amount > 0
    ]
    rows.sort(key=lambda r: (-r.amount, r.debtor_id, r.creditor_id))
    return rows


def nickname_of(residents: Iterable[Resident], resident_id: int) -> str:
    for resident in residents:
        if resident.id == resident_id:
            return resident.nickname
    return f"#{resident_id}"


def resident_statements(
    matrix: BalanceMatrix,
    residents: Sequence[Resident],
) -> list[ResidentStatement]:
    """
    One statement per resident that has outstanding balances.

    Statements follow the order of ``residents``; lines follow the
    counterpart order of the matrix row.
    """
    names = {r.id: r.nickname for r in residents}
    rows = matrix.rows()

    statements = []
    for resident in residents:
        row = rows.get(resident.id)
        if not row:
            continue
        lines = [
            StatementLine(
                counterpart_id=other_id,
                counterpart_nickname=names.get(other_id, f"#{other_id}"),
                direction=BalanceDirection.TO_PAY if amount > 0 else BalanceDirection.TO_COLLECT,
                amount=abs(amount),
            )
            for other_id, amount in row.items()
        ]
        statements.append(ResidentStatement(
            resident_id=resident.id,
            nickname=resident.nickname,
            lines=lines,
        ))
    return statements


def format_amount(value: Decimal, symbol: Optional[str] = None) -> str:
    """
    Format an amount for display, e.g. ``₱1,234.50``.

    The symbol and number of places come from LedgerSettings unless
    a symbol is given explicitly.
    """
    ledger = get_settings().ledger
    if symbol is None:
        symbol = ledger.currency_symbol
    places = ledger.decimal_places
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.{places}f}"
