"""Derived balances for transactions with partial payments.

Payments never change a transaction's amount, due date or cleared flag;
settlement is a separate explicit action. Everything here is display math.
"""

from __future__ import annotations

from debtledger.database.models import Transaction


def total_paid(txn: Transaction) -> float:
    return sum(p.amount for p in txn.payments)


def remaining_balance(txn: Transaction) -> float:
    """amount minus payments; may go negative on overpayment."""
    return txn.amount - total_paid(txn)


def expected_returns(txn: Transaction) -> float | None:
    """Returns earned at returns_percentage, or None when no percentage is set."""
    if txn.returns_percentage is None:
        return None
    return txn.amount * (txn.returns_percentage / 100)


def total_with_returns(txn: Transaction) -> float:
    return (txn.amount or 0) + (expected_returns(txn) or 0)
