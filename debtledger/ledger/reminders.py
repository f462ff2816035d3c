"""Templated reminder messages for outstanding transactions.

Templates live in reminders.yaml, one per escalation level, and are
rendered with str.format placeholders: {first_name}, {amount}, {note}.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from debtledger.database.models import Transaction

from .payments import remaining_balance

logger = logging.getLogger(__name__)

LEVELS = ("jester", "knight", "king", "executioner")
DEFAULT_LEVEL = "jester"
DEFAULT_NOTE = "our last exchange"


@dataclass
class Reminder:
    level: str
    title: str
    text: str


def first_name(name: str) -> str:
    parts = (name or "").split()
    return parts[0] if parts else ""


def render_reminder(
    txn: Transaction,
    templates: dict[str, dict],
    level: str = DEFAULT_LEVEL,
    format_amount=None,
    use_remaining: bool = False,
) -> Reminder:
    """Render the reminder text for txn at the given escalation level.

    Args:
        templates: Level -> {title, text} mapping (Config.reminders).
        format_amount: Callable formatting a float for display; defaults to
            two decimals.
        use_remaining: Quote the remaining balance instead of the face amount.

    Raises:
        ValueError: If the level has no template.
    """
    template = templates.get(level)
    if template is None:
        raise ValueError(
            f"Unknown reminder level '{level}'. Available: {', '.join(templates)}"
        )
    amount = remaining_balance(txn) if use_remaining else txn.amount
    fmt = format_amount or (lambda v: f"{v:,.2f}")
    try:
        text = template["text"].format(
            first_name=first_name(txn.name),
            amount=fmt(amount),
            note=txn.note or DEFAULT_NOTE,
        )
    except KeyError as e:
        raise ValueError(f"Reminder template '{level}' uses unknown placeholder {e}") from e
    return Reminder(level=level, title=template.get("title", level.title()), text=text)
