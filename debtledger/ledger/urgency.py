"""Urgency classification and ranking for outstanding transactions.

Three views over the same calendar-day distance between a due date and
"today":

  is_due_soon       0 <= days <= 7
  is_overdue        days < 0
  get_urgency_score additive score used only for relative ranking

Undated or malformed due dates are treated as "no due date", never as an
error. Every function takes an injectable ``today`` so callers and tests
control the clock.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from debtledger.database.models import TYPE_DEBT, Transaction

from .dates import days_until, parse_date
from .dates import today as _today
from .payments import total_with_returns

logger = logging.getLogger(__name__)

DUE_SOON_DAYS = 7
PRIORITY_THRESHOLD = 100

# ── Score weights ─────────────────────────────────────────

BASE_DEBT = 100
BASE_CREDIT = 50
UNDATED_PENALTY = -50
OUTSTANDING_BONUS = 10
AMOUNT_DIVISOR = 10

# (max diff_days inclusive, points); checked in order after the overdue case
_PROXIMITY_BANDS = (
    (1, 300),
    (7, 150),
    (30, 20),
)
OVERDUE_POINTS = 500


@dataclass
class PriorityResult:
    """The single highest-ranked outstanding transaction."""
    transaction: Transaction
    score: int
    threshold: int = PRIORITY_THRESHOLD

    @property
    def is_critical(self) -> bool:
        """Only scores at or above the threshold are surfaced to the user."""
        return self.score >= self.threshold


def _diff_days(due_date, ref: date | None) -> int | None:
    due = parse_date(due_date)
    if due is None:
        return None
    return days_until(due, ref or _today())


def is_due_soon(
    due_date, today: date | None = None, window_days: int = DUE_SOON_DAYS,
) -> bool:
    """True when the due date is today or within the next window_days days."""
    diff = _diff_days(due_date, today)
    if diff is None:
        return False
    return 0 <= diff <= window_days


def is_overdue(due_date, today: date | None = None) -> bool:
    """True when the due date is strictly before today."""
    diff = _diff_days(due_date, today)
    if diff is None:
        return False
    return diff < 0


def _proximity_points(diff: int | None) -> int:
    if diff is None:
        return UNDATED_PENALTY
    if diff < 0:
        return OVERDUE_POINTS
    for max_days, points in _PROXIMITY_BANDS:
        if diff <= max_days:
            return points
    return 0


def get_urgency_score(
    txn: Transaction, today: date | None = None, use_returns: bool = False,
) -> int:
    """Deterministic additive urgency score.

    debt +100 / credit +50, due-date proximity term, amount / 10, and +10
    while outstanding. Rounded half up to the nearest integer.
    """
    score = float(BASE_DEBT if txn.type == TYPE_DEBT else BASE_CREDIT)
    score += _proximity_points(_diff_days(txn.due_date, today))

    amount = total_with_returns(txn) if use_returns else (txn.amount or 0)
    score += amount / AMOUNT_DIVISOR

    if not txn.cleared:
        score += OUTSTANDING_BONUS
    return math.floor(score + 0.5)


def top_priority(
    txns: Iterable[Transaction],
    today: date | None = None,
    threshold: int = PRIORITY_THRESHOLD,
    use_returns: bool = False,
) -> PriorityResult | None:
    """Return the highest-scoring uncleared transaction, or None.

    Strictly greater scores replace the current leader, so the first item
    seen wins an exact tie.
    """
    ref = today or _today()
    best: PriorityResult | None = None
    for txn in txns:
        if txn.cleared:
            continue
        score = get_urgency_score(txn, ref, use_returns=use_returns)
        if best is None or score > best.score:
            best = PriorityResult(transaction=txn, score=score, threshold=threshold)
    if best is not None:
        logger.debug(
            "Top priority %s (%s) score=%d critical=%s",
            best.transaction.id, best.transaction.name, best.score, best.is_critical,
        )
    return best


def notifications(
    txns: Iterable[Transaction],
    today: date | None = None,
    window_days: int = DUE_SOON_DAYS,
) -> list[Transaction]:
    """Every uncleared transaction that is due soon or overdue, in input order."""
    ref = today or _today()
    return [
        t for t in txns
        if not t.cleared
        and (is_due_soon(t.due_date, ref, window_days) or is_overdue(t.due_date, ref))
    ]


def rank(
    txns: Iterable[Transaction],
    today: date | None = None,
    use_returns: bool = False,
) -> list[tuple[Transaction, int]]:
    """Uncleared transactions with scores, highest first (stable on ties)."""
    ref = today or _today()
    scored = [
        (t, get_urgency_score(t, ref, use_returns=use_returns))
        for t in txns if not t.cleared
    ]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)
