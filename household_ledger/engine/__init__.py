"""Ledger engine package."""

from household_ledger.engine.balances import compute_balances, round_amount
from household_ledger.engine.summary import (
    debt_rows,
    format_amount,
    nickname_of,
    resident_statements,
)

__all__ = [
    "compute_balances",
    "debt_rows",
    "format_amount",
    "nickname_of",
    "resident_statements",
    "round_amount",
]
