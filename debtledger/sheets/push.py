"""Google Sheets push: unidirectional SQLite -> Sheets mirror of the ledger.

Transforms ledger records into sheet rows, batches appends, and throttles
writes to stay under the Google Sheets API quota (50 writes/minute).

The gspread spreadsheet is injected via constructor for testability:
tests pass a mock, production passes the real authenticated spreadsheet.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from gspread.exceptions import WorksheetNotFound

from debtledger.database.base import LedgerStore
from debtledger.database.models import Payment, RecurringTransaction, Transaction
from debtledger.ledger.payments import remaining_balance, total_paid
from debtledger.ledger.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


# ── Sheet column schemas ─────────────────────────────────

TXN_HEADERS = [
    "id", "type", "name", "amount", "paid", "remaining", "due_date",
    "cleared", "contact", "note", "returns_percentage", "recurring_id",
    "created_at", "updated_at",
]

PAYMENT_HEADERS = [
    "id", "transaction_id", "amount", "date", "note", "created_at",
]

RECURRING_HEADERS = [
    "id", "type", "name", "amount", "frequency", "category", "start_date",
    "next_due_date", "last_generated_date", "active",
    "auto_create_transaction", "contact", "note",
]

# Sheet tab names
SHEET_TRANSACTIONS = "Transactions"
SHEET_PAYMENTS = "Payments"
SHEET_RECURRING = "Recurring"

_COLUMN_COUNTS = {
    SHEET_TRANSACTIONS: len(TXN_HEADERS),
    SHEET_PAYMENTS: len(PAYMENT_HEADERS),
    SHEET_RECURRING: len(RECURRING_HEADERS),
}

# Rate limiting
MAX_WRITES_PER_MINUTE = 50
BATCH_SIZE = 100
_WRITE_ACTION = "sheets_write"


# ── Data transformation ──────────────────────────────────


def _val(v: object) -> str | float | int:
    """Convert a value for Sheets: None -> empty string, else pass through."""
    if v is None:
        return ""
    return v


def txn_to_row(txn: Transaction) -> list:
    return [
        txn.id,
        txn.type,
        txn.name,
        txn.amount,
        total_paid(txn),
        remaining_balance(txn),
        _val(txn.due_date),
        txn.cleared,
        _val(txn.contact),
        _val(txn.note),
        _val(txn.returns_percentage),
        _val(txn.recurring_id),
        txn.created_at,
        txn.updated_at,
    ]


def payment_to_row(p: Payment) -> list:
    return [p.id, p.transaction_id, p.amount, p.date, _val(p.note), p.created_at]


def recurring_to_row(rec: RecurringTransaction) -> list:
    return [
        rec.id,
        rec.type,
        rec.name,
        rec.amount,
        rec.frequency,
        rec.category,
        rec.start_date,
        rec.next_due_date,
        _val(rec.last_generated_date),
        rec.active,
        rec.auto_create_transaction,
        _val(rec.contact),
        _val(rec.note),
    ]


# ── Batch result ─────────────────────────────────────────


@dataclass
class PushResult:
    """Result of a push operation."""
    sheet: str
    rows_pushed: int
    api_calls: int


# ── SheetsPush ───────────────────────────────────────────


class SheetsPush:
    """Ledger -> Google Sheets sync with batching and rate limiting.

    Args:
        spreadsheet: A gspread.Spreadsheet instance (or mock).
        limiter: Write throttle; defaults to 50 writes per rolling minute.
        sleep: Sleep function used while throttled.
    """

    def __init__(
        self,
        spreadsheet: object,
        limiter: RateLimiter | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.spreadsheet = spreadsheet
        self.limiter = limiter or RateLimiter(
            max_attempts=MAX_WRITES_PER_MINUTE, window_seconds=60.0,
        )
        self._sleep = sleep
        self.pending_appends: dict[str, list[list]] = {}
        self.pending_clears: set[str] = set()

    # ── Queue operations ─────────────────────────────────

    def queue_append(self, sheet_name: str, rows: list[list]) -> None:
        """Queue rows for append to a sheet. Call flush() to execute."""
        self.pending_appends.setdefault(sheet_name, []).extend(rows)

    def queue_clear(self, sheet_name: str) -> None:
        """Queue a sheet for clearing (used by full_rebuild)."""
        self.pending_clears.add(sheet_name)

    # ── Rate limiting ────────────────────────────────────

    def _wait_for_rate_limit(self) -> None:
        """Sleep until the limiter admits another write, then record it."""
        while not self.limiter.check(_WRITE_ACTION):
            self._sleep(self.limiter.retry_after(_WRITE_ACTION))

    def _worksheet(self, sheet_name: str, cols: int):
        try:
            return self.spreadsheet.worksheet(sheet_name)
        except WorksheetNotFound:
            logger.info("Creating missing worksheet '%s'", sheet_name)
            return self.spreadsheet.add_worksheet(title=sheet_name, rows=1000, cols=cols)

    # ── Flush ────────────────────────────────────────────

    def flush(self) -> list[PushResult]:
        """Execute all pending operations with rate limiting and batching.

        Returns a list of PushResult for each sheet that was written to.
        Continues processing remaining sheets if one fails.
        """
        results: list[PushResult] = []
        errors: list[str] = []

        for sheet_name in sorted(self.pending_clears):
            try:
                ws = self._worksheet(sheet_name, cols=_COLUMN_COUNTS.get(sheet_name, 26))
                self._wait_for_rate_limit()
                ws.clear()
                self.pending_clears.discard(sheet_name)
            except Exception as e:
                logger.error("Failed to clear sheet '%s': %s", sheet_name, e)
                errors.append(f"clear:{sheet_name}")

        for sheet_name, rows in list(self.pending_appends.items()):
            if not rows:
                continue
            try:
                ws = self._worksheet(sheet_name, cols=_COLUMN_COUNTS.get(sheet_name, 26))
                api_calls = 0
                for i in range(0, len(rows), BATCH_SIZE):
                    chunk = rows[i : i + BATCH_SIZE]
                    self._wait_for_rate_limit()
                    ws.append_rows(chunk, value_input_option="RAW")
                    api_calls += 1
                results.append(PushResult(
                    sheet=sheet_name,
                    rows_pushed=len(rows),
                    api_calls=api_calls,
                ))
                del self.pending_appends[sheet_name]
            except Exception as e:
                logger.error("Failed to push to sheet '%s': %s", sheet_name, e)
                errors.append(f"push:{sheet_name}")

        if errors:
            logger.warning("Sheets push completed with %d error(s): %s", len(errors), errors)

        return results

    # ── High-level push ──────────────────────────────────

    def full_rebuild(self, store: LedgerStore) -> list[PushResult]:
        """Clear all ledger sheets and re-push everything from the store."""
        for name in (SHEET_TRANSACTIONS, SHEET_PAYMENTS, SHEET_RECURRING):
            self.queue_clear(name)

        self.queue_append(SHEET_TRANSACTIONS, [TXN_HEADERS])
        self.queue_append(SHEET_PAYMENTS, [PAYMENT_HEADERS])
        self.queue_append(SHEET_RECURRING, [RECURRING_HEADERS])

        txns = store.list_transactions(include_cleared=True)
        self.queue_append(SHEET_TRANSACTIONS, [txn_to_row(t) for t in txns])
        self.queue_append(
            SHEET_PAYMENTS,
            [payment_to_row(p) for t in txns for p in t.payments],
        )
        self.queue_append(
            SHEET_RECURRING,
            [recurring_to_row(r) for r in store.list_recurring()],
        )
        return self.flush()

