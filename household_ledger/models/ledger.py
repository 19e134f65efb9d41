"""
Balance Models

BalanceMatrix is the output of the ledger engine: an explicit mapping
from an ordered (debtor, creditor) pair of resident ids to a signed
amount.

A positive entry m[x, y] = v means x owes y the amount v.
Both directions are stored, so m[y, x] == -v.
"""

from collections.abc import Iterator, Mapping
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


Pair = tuple[int, int]


class BalanceMatrix(Mapping):
    """
    Read-only pairwise balance matrix.

    Built by the ledger engine from already rounded, non-zero entries.
    Supports pair lookup (``m[(a, b)]``), iteration over pairs, and a
    two-level row view keyed by debtor then creditor.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Optional[Mapping[Pair, Decimal]] = None):
        self._entries: dict[Pair, Decimal] = dict(entries or {})

    def __getitem__(self, pair: Pair) -> Decimal:
        return self._entries[pair]

    def __iter__(self) -> Iterator[Pair]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BalanceMatrix):
            return self._entries == other._entries
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._entries.items()))

    def __repr__(self) -> str:
        return f"BalanceMatrix({self._entries!r})"

    def balance(self, debtor: int, creditor: int) -> Decimal:
        """Net amount debtor owes creditor; zero when the pair is absent."""
        return self._entries.get((debtor, creditor), Decimal("0"))

    def row(self, debtor: int) -> dict[int, Decimal]:
        """All entries for one resident, keyed by counterpart."""
        return {
            creditor: amount
            for (d, creditor), amount in self._entries.items()
            if d == debtor
        }

    def rows(self) -> dict[int, dict[int, Decimal]]:
        """Two-level view: debtor -> creditor -> amount. Empty rows are absent."""
        out: dict[int, dict[int, Decimal]] = {}
        for (debtor, creditor), amount in self._entries.items():
            out.setdefault(debtor, {})[creditor] = amount
        return out

    def residents_involved(self) -> set[int]:
        """Ids of residents with at least one outstanding balance."""
        return {debtor for debtor, _ in self._entries}

    @property
    def is_settled(self) -> bool:
        """True when nobody owes anybody anything."""
        return not self._entries

    def to_dict(self) -> dict[str, dict[str, str]]:
        """Plain, JSON-friendly export keyed by id strings."""
        return {
            str(debtor): {str(creditor): str(amount) for creditor, amount in row.items()}
            for debtor, row in self.rows().items()
        }


class DebtRow(BaseModel):
    """One 'debtor owes creditor amount' line of the summary table."""

    debtor_id: int
    creditor_id: int
    amount: Decimal = Field(..., gt=0)


class BalanceDirection(str, Enum):
    """Which way money has to move for a resident."""
    TO_PAY = "to_pay"
    TO_COLLECT = "to_collect"


class StatementLine(BaseModel):
    """A single counterpart entry in a resident's statement."""

    counterpart_id: int
    counterpart_nickname: str
    direction: BalanceDirection
    amount: Decimal = Field(..., gt=0, description="Always positive")


class ResidentStatement(BaseModel):
    """Everything one resident has to pay or collect."""

    resident_id: int
    nickname: str
    lines: list[StatementLine] = Field(default_factory=list)

    @property
    def total_to_pay(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.direction == BalanceDirection.TO_PAY),
            Decimal("0"),
        )

    @property
    def total_to_collect(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.direction == BalanceDirection.TO_COLLECT),
            Decimal("0"),
        )
