"""Aggregate and search queries that go beyond single-record CRUD.

Totals are computed in SQL over uncleared rows so the CLI status screen
does not have to load every transaction.
"""

from __future__ import annotations

import sqlite3


def get_ledger_totals(conn: sqlite3.Connection) -> dict:
    """Outstanding credit, debt and net position over uncleared transactions.

    Uses face amounts (not remaining balances), matching the dashboard
    totals. Returns dict with keys: credit, debt, net.
    """
    row = conn.execute(
        "SELECT"
        "  COALESCE(SUM(CASE WHEN type = 'credit' THEN amount END), 0) AS credit,"
        "  COALESCE(SUM(CASE WHEN type = 'debt' THEN amount END), 0) AS debt"
        " FROM transactions WHERE cleared = 0"
    ).fetchone()
    credit = float(row["credit"])
    debt = float(row["debt"])
    return {"credit": credit, "debt": debt, "net": credit - debt}


def search_transaction_ids(conn: sqlite3.Connection, query: str) -> list[str]:
    """Case-insensitive substring search over name, contact and note.

    Returns matching ids newest first. An empty query matches everything.
    """
    if not query:
        rows = conn.execute(
            "SELECT id FROM transactions ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [r["id"] for r in rows]

    # Escape LIKE wildcards so user input matches literally
    escaped = (
        query.lower()
        .replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    pattern = f"%{escaped}%"
    rows = conn.execute(
        "SELECT id FROM transactions"
        " WHERE LOWER(name) LIKE ? ESCAPE '\\'"
        "    OR LOWER(COALESCE(contact, '')) LIKE ? ESCAPE '\\'"
        "    OR LOWER(COALESCE(note, '')) LIKE ? ESCAPE '\\'"
        " ORDER BY created_at DESC, rowid DESC",
        (pattern, pattern, pattern),
    ).fetchall()
    return [r["id"] for r in rows]


def get_status_counts(conn: sqlite3.Connection) -> dict:
    """Summary counts for the status command."""
    row = conn.execute(
        "SELECT"
        "  (SELECT COUNT(*) FROM transactions) AS total_txns,"
        "  (SELECT COUNT(*) FROM transactions WHERE cleared = 0) AS outstanding,"
        "  (SELECT COUNT(*) FROM transactions WHERE cleared = 1) AS settled,"
        "  (SELECT COUNT(*) FROM payments) AS total_payments,"
        "  (SELECT COUNT(*) FROM recurring_transactions WHERE active = 1) AS active_recurring"
    ).fetchone()
    return {
        "total_txns": row["total_txns"],
        "outstanding": row["outstanding"],
        "settled": row["settled"],
        "total_payments": row["total_payments"],
        "active_recurring": row["active_recurring"],
    }
