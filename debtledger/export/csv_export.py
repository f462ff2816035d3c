"""CSV export of the ledger.

One row per transaction with payment totals and remaining balance.
Quoting follows RFC 4180 via the csv module (fields containing commas,
quotes or newlines are wrapped in quotes, embedded quotes doubled).
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import date
from pathlib import Path

from debtledger.database.models import TYPE_CREDIT, Transaction
from debtledger.ledger.dates import format_date, parse_date
from debtledger.ledger.payments import remaining_balance, total_paid

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Date Added",
    "Type",
    "Name",
    "Total Amount",
    "Payments Made",
    "Remaining",
    "Status",
    "Due Date",
    "Contact",
    "Returns %",
    "Notes",
]


def _fmt_date(value: str | None) -> str:
    d = parse_date(value)
    return format_date(d) if d else ""


def _fmt_pct(value: float | None) -> str:
    if value is None:
        return ""
    # 10.0 -> "10", 12.5 -> "12.5"
    return f"{value:g}"


def txn_to_csv_row(txn: Transaction) -> list[str]:
    return [
        _fmt_date(txn.created_at),
        "Incoming" if txn.type == TYPE_CREDIT else "Outgoing",
        txn.name or "",
        f"{txn.amount:.2f}",
        f"{total_paid(txn):.2f}",
        f"{remaining_balance(txn):.2f}",
        "Settled" if txn.cleared else "Active",
        _fmt_date(txn.due_date),
        txn.contact or "",
        _fmt_pct(txn.returns_percentage),
        txn.note or "",
    ]


def generate_csv(txns: list[Transaction]) -> str:
    """Render transactions as CSV text (header row first, newline-separated)."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for txn in txns:
        writer.writerow(txn_to_csv_row(txn))
    return buf.getvalue()


def default_filename(on: date | None = None) -> str:
    return f"debtledger-transactions-{format_date(on or date.today())}.csv"


def write_csv(txns: list[Transaction], path: Path | str) -> Path:
    """Write the CSV export to path and return it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        f.write(generate_csv(txns))
    logger.info("Exported %d transaction(s) to %s", len(txns), path)
    return path
