"""Input models for user-entered ledger records.

Records are validated here before they reach the store; the urgency and
recurring modules assume amounts and types are already well-formed.
Free-text fields are sanitized inside the models, so a validated model
only ever carries cleaned strings.
"""

from __future__ import annotations

import re
from datetime import date as date_type
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from debtledger.database.models import FREQUENCIES, RECURRING_CATEGORIES

MAX_AMOUNT = 999_999_999
NAME_MAX = 100
NOTE_MAX = 500
CONTACT_MAX = 100

TransactionType = Literal["credit", "debt"]
Frequency = Literal[
    "daily", "weekly", "biweekly", "monthly",
    "quarterly", "semiannually", "annually",
]
Category = Literal[
    "salary", "rent", "utilities", "subscription", "insurance", "loan", "other",
]

_TAG_RE = re.compile(r"<[^>]*>")
_JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Field name -> message shown to the user when that field fails
FIELD_MESSAGES = {
    "type": 'Invalid transaction type. Must be "credit" or "debt".',
    "name": "Name is required and must be between 1-100 characters.",
    "amount": "Amount must be a positive number less than 999,999,999.",
    "due_date": "Due date must be in YYYY-MM-DD format.",
    "returns_percentage": "Returns percentage must be between 0 and 100.",
    "frequency": f"Frequency must be one of: {', '.join(FREQUENCIES)}.",
    "start_date": "Start date is required in YYYY-MM-DD format.",
    "category": f"Category must be one of: {', '.join(RECURRING_CATEGORIES)}.",
    "date": "Payment date must be in YYYY-MM-DD format.",
}


def sanitize_string(value: str | None, max_length: int = NOTE_MAX) -> str:
    """Strip markup, script protocols, inline handlers and NUL bytes, then truncate."""
    if not value or not isinstance(value, str):
        return ""
    cleaned = _TAG_RE.sub("", value)
    cleaned = _JS_PROTOCOL_RE.sub("", cleaned)
    cleaned = _EVENT_HANDLER_RE.sub("", cleaned)
    cleaned = cleaned.replace("\0", "").strip()
    return cleaned[:max_length]


def _check_date_text(value):
    # Strings must be plain YYYY-MM-DD; pydantic would also take timestamps
    if isinstance(value, str) and not _DATE_RE.match(value):
        raise ValueError("expected YYYY-MM-DD")
    return value


def error_messages(exc: ValidationError) -> list[str]:
    """User-facing messages for a ValidationError, one per failing field."""
    messages: list[str] = []
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else ""
        msg = FIELD_MESSAGES.get(field, f"{field}: {err['msg']}")
        if msg not in messages:
            messages.append(msg)
    return messages


# ── Input models ──────────────────────────────────────────


class _RecordIn(BaseModel):
    """Fields shared by one-off transactions and recurring templates."""
    type: TransactionType
    name: str
    amount: float = Field(gt=0, le=MAX_AMOUNT, allow_inf_nan=False)
    note: Optional[str] = None
    contact: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v):
        if not isinstance(v, str):
            return v
        cleaned = sanitize_string(v, NAME_MAX)
        if not cleaned:
            raise ValueError("name is empty after sanitization")
        return cleaned

    @field_validator("note", mode="before")
    @classmethod
    def clean_note(cls, v):
        return sanitize_string(v, NOTE_MAX) or None

    @field_validator("contact", mode="before")
    @classmethod
    def clean_contact(cls, v):
        return sanitize_string(v, CONTACT_MAX) or None


class TransactionIn(_RecordIn):
    """A new credit or debt as entered by the user."""
    due_date: Optional[date_type] = None
    returns_percentage: Optional[float] = Field(None, ge=0, le=100, allow_inf_nan=False)

    @field_validator("due_date", mode="before")
    @classmethod
    def check_due_date(cls, v):
        if v == "":
            return None
        return _check_date_text(v)

    def to_record(self) -> dict:
        """Keyword arguments for models.Transaction."""
        data = self.model_dump()
        data["due_date"] = self.due_date.isoformat() if self.due_date else None
        return data


class RecurringIn(_RecordIn):
    """A new recurring template: transaction payload plus schedule."""
    frequency: Frequency
    start_date: date_type
    category: Category = "other"

    @field_validator("start_date", mode="before")
    @classmethod
    def check_start_date(cls, v):
        return _check_date_text(v)

    def to_record(self) -> dict:
        """Keyword arguments for models.RecurringTransaction (minus next_due_date)."""
        data = self.model_dump()
        data["start_date"] = self.start_date.isoformat()
        return data


class PaymentIn(BaseModel):
    """A partial payment against an existing transaction."""
    amount: float = Field(gt=0, le=MAX_AMOUNT, allow_inf_nan=False)
    date: date_type
    note: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def check_date(cls, v):
        return _check_date_text(v)

    @field_validator("note", mode="before")
    @classmethod
    def clean_note(cls, v):
        return sanitize_string(v, NOTE_MAX) or None
