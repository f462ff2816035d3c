"""Recurring rollforward: materialize due occurrences of recurring templates.

A template is due when it is active, allows auto-creation, and its
next_due_date is on or before today. Materializing occurrence D emits one
transaction dated D, sets last_generated_date = D and advances
next_due_date by the template's frequency. The three steps are applied
through the store's atomic apply_rollforward, a compare-and-swap on
next_due_date, so a retried or concurrent pass cannot emit D twice.

Catch-up policy: by default the processor keeps materializing until the
template's next_due_date is after today (one atomic write per
occurrence). With catch_up=False it emits at most one occurrence per
template per pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Iterable

from debtledger.config import DEFAULT_MAX_OCCURRENCES, DEFAULT_NAME_SUFFIX
from debtledger.database.base import LedgerStore
from debtledger.database.models import RecurringTransaction, Transaction

from .dates import add_months, add_years, days_until, format_date, parse_date
from .dates import today as _today

logger = logging.getLogger(__name__)

_DAY_STEPS = {
    "daily": 1,
    "weekly": 7,
    "biweekly": 14,
}
_MONTH_STEPS = {
    "monthly": 1,
    "quarterly": 3,
    "semiannually": 6,
}

FREQUENCY_LABELS = {
    "daily": "Daily",
    "weekly": "Weekly",
    "biweekly": "Bi-weekly",
    "monthly": "Monthly",
    "quarterly": "Quarterly",
    "semiannually": "Semi-annually",
    "annually": "Annually",
}

UPCOMING_DAYS = 7


def calculate_next_due_date(current: date | str, frequency: str) -> date:
    """Advance a due date by one period of the given frequency.

    Month and year steps keep the day-of-month and spill overflow into the
    following month (2024-01-31 monthly -> 2024-03-02).

    Raises:
        ValueError: If the date cannot be parsed or the frequency is unknown.
    """
    d = parse_date(current)
    if d is None:
        raise ValueError(f"Invalid date: {current!r}")
    if frequency in _DAY_STEPS:
        return d + timedelta(days=_DAY_STEPS[frequency])
    if frequency in _MONTH_STEPS:
        return add_months(d, _MONTH_STEPS[frequency])
    if frequency == "annually":
        return add_years(d, 1)
    raise ValueError(f"Unknown frequency: {frequency!r}")


def frequency_label(frequency: str) -> str:
    return FREQUENCY_LABELS.get(frequency, frequency)


def is_due(rec: RecurringTransaction, today: date | None = None) -> bool:
    if not rec.active or rec.auto_create_transaction is False:
        return False
    next_due = parse_date(rec.next_due_date)
    if next_due is None:
        return False
    return next_due <= (today or _today())


def already_generated(rec: RecurringTransaction) -> bool:
    """True when the current occurrence was materialized already."""
    last = parse_date(rec.last_generated_date)
    if last is None:
        return False
    return last == parse_date(rec.next_due_date)


@dataclass
class RollforwardPlan:
    """One write for the store to apply atomically."""
    recurring_id: str
    expected_next_due_date: str
    new_last_generated_date: str
    new_next_due_date: str
    transaction: Transaction


def plan_rollforward(
    rec: RecurringTransaction,
    today: date | None = None,
    name_suffix: str = DEFAULT_NAME_SUFFIX,
) -> RollforwardPlan | None:
    """Describe the materialization of rec's current occurrence, or None if not due."""
    if not is_due(rec, today):
        return None
    if already_generated(rec):
        logger.debug(
            "Recurring %s already generated for %s", rec.id, rec.next_due_date,
        )
        return None

    occurrence = parse_date(rec.next_due_date)
    occurrence_str = format_date(occurrence)
    txn = Transaction(
        type=rec.type,
        name=f"{rec.name}{name_suffix}",
        amount=rec.amount,
        due_date=occurrence_str,
        cleared=False,
        note=rec.note,
        contact=rec.contact,
        recurring_id=rec.id,
    )
    return RollforwardPlan(
        recurring_id=rec.id,
        # CAS compares the stored text, not the normalized date
        expected_next_due_date=rec.next_due_date,
        new_last_generated_date=occurrence_str,
        new_next_due_date=format_date(
            calculate_next_due_date(occurrence, rec.frequency)
        ),
        transaction=txn,
    )


def apply_plan(rec: RecurringTransaction, plan: RollforwardPlan) -> RecurringTransaction:
    """Return a copy of rec as it looks after plan has been applied."""
    return replace(
        rec,
        last_generated_date=plan.new_last_generated_date,
        next_due_date=plan.new_next_due_date,
    )


def recurring_due_soon(
    templates: Iterable[RecurringTransaction],
    today: date | None = None,
    window_days: int = UPCOMING_DAYS,
) -> list[RecurringTransaction]:
    """Active templates whose next occurrence falls within the next window_days days."""
    ref = today or _today()
    result = []
    for rec in templates:
        if not rec.active:
            continue
        next_due = parse_date(rec.next_due_date)
        if next_due is None:
            continue
        if 0 <= days_until(next_due, ref) <= window_days:
            result.append(rec)
    return result


# ── Processor ─────────────────────────────────────────────


@dataclass
class ProcessResult:
    """Outcome of one processing pass."""
    created: list[Transaction] = field(default_factory=list)
    templates_seen: int = 0
    conflicts: int = 0
    errors: int = 0

    @property
    def created_count(self) -> int:
        return len(self.created)


class RecurringProcessor:
    """Runs rollforward plans against a LedgerStore.

    Args:
        store: Persistence collaborator providing apply_rollforward.
        catch_up: Materialize every missed occurrence (True) or one per pass.
        max_occurrences: Upper bound on occurrences per template per pass.
        name_suffix: Appended to the template name on generated transactions.
    """

    def __init__(
        self,
        store: LedgerStore,
        catch_up: bool = True,
        max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
        name_suffix: str = DEFAULT_NAME_SUFFIX,
    ):
        self.store = store
        self.catch_up = catch_up
        self.max_occurrences = max_occurrences
        self.name_suffix = name_suffix

    @classmethod
    def from_config(cls, store: LedgerStore, config) -> RecurringProcessor:
        rec = config.recurring
        return cls(
            store,
            catch_up=rec["catch_up"],
            max_occurrences=rec["max_occurrences"],
            name_suffix=rec["name_suffix"],
        )

    def process(
        self,
        templates: Iterable[RecurringTransaction] | None = None,
        today: date | None = None,
    ) -> ProcessResult:
        """Materialize due occurrences for templates (default: all active in the store)."""
        ref = today or _today()
        if templates is None:
            templates = self.store.list_recurring(active_only=True)

        result = ProcessResult()
        for rec in templates:
            result.templates_seen += 1
            if parse_date(rec.next_due_date) is None:
                logger.warning(
                    "Recurring %s has invalid next_due_date %r, skipping",
                    rec.id, rec.next_due_date,
                )
                continue
            self._process_one(rec, ref, result)

        if result.created:
            logger.info(
                "%d transaction(s) auto-created from recurring", result.created_count,
            )
        return result

    def _process_one(
        self, rec: RecurringTransaction, ref: date, result: ProcessResult,
    ) -> None:
        for _ in range(self.max_occurrences):
            try:
                plan = plan_rollforward(rec, ref, self.name_suffix)
                if plan is None:
                    return
                created = self.store.apply_rollforward(plan)
            except Exception as e:
                logger.error(
                    "Failed to materialize %s for recurring %s: %s",
                    rec.next_due_date, rec.id, e,
                )
                result.errors += 1
                return
            if created is None:
                logger.warning(
                    "Recurring %s occurrence %s was advanced by another writer",
                    rec.id, plan.expected_next_due_date,
                )
                result.conflicts += 1
                return
            result.created.append(created)
            rec = apply_plan(rec, plan)
            if not self.catch_up:
                return
        if is_due(rec, ref):
            logger.warning(
                "Recurring %s hit max_occurrences=%d; next_due_date is %s",
                rec.id, self.max_occurrences, rec.next_due_date,
            )
