"""
Household Ledger - Source Package

Shared-household budgeting: residents log expenses, say who fronted
the money and who shares it, record reimbursements, and read a running
summary of who owes whom.

DESIGN PRINCIPLES:
1. Balances are a pure function of the records
2. Recompute from scratch on every change
3. Tolerate dangling references, never crash on them
4. Every write is validated and audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
