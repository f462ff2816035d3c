"""Dataclass models matching the SQLite schema.

Each dataclass corresponds to one table. Fields match column names exactly.
All primary keys are TEXT (UUID strings generated via uuid4()). Calendar
dates are stored as YYYY-MM-DD strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

TYPE_CREDIT = "credit"  # money owed to the user
TYPE_DEBT = "debt"      # money the user owes
TRANSACTION_TYPES = (TYPE_CREDIT, TYPE_DEBT)

FREQUENCIES = (
    "daily", "weekly", "biweekly", "monthly",
    "quarterly", "semiannually", "annually",
)

RECURRING_CATEGORIES = (
    "salary", "rent", "utilities", "subscription", "insurance", "loan", "other",
)


def _new_id() -> str:
    return str(uuid4())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Payment:
    transaction_id: str
    amount: float
    date: str
    id: str = field(default_factory=_new_id)
    note: str | None = None
    created_at: str = field(default_factory=_now)


@dataclass
class Transaction:
    type: str
    name: str
    amount: float
    id: str = field(default_factory=_new_id)
    due_date: str | None = None
    cleared: bool = False
    note: str | None = None
    contact: str | None = None
    returns_percentage: float | None = None
    recurring_id: str | None = None
    payments: list[Payment] = field(default_factory=list)
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)


@dataclass
class RecurringTransaction:
    type: str
    name: str
    amount: float
    frequency: str
    start_date: str
    next_due_date: str
    id: str = field(default_factory=_new_id)
    last_generated_date: str | None = None
    active: bool = True
    auto_create_transaction: bool = True
    category: str = "other"
    note: str | None = None
    contact: str | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
