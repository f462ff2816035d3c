"""Repository: SQLite implementation of LedgerStore using raw SQL.

All methods take/return dataclass instances from models.py.
Connection management uses a single connection with WAL mode and
foreign keys enabled.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from .base import LedgerStore, RecordNotFoundError
from .models import Payment, RecurringTransaction, Transaction

if TYPE_CHECKING:
    from debtledger.ledger.recurring import RollforwardPlan

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository(LedgerStore):
    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ── Migrations ──────────────────────────────────────────

    def apply_migrations(self, migrations_dir: Path = MIGRATIONS_DIR):
        """Apply all pending SQL migrations in order.

        Each migration runs in a transaction: if the SQL fails, the
        schema_version row is not inserted, allowing retry on next startup.
        """
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version ("
            "  version INTEGER PRIMARY KEY,"
            "  description TEXT,"
            "  applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP"
            ")"
        )
        self.conn.commit()

        row = self.conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        current = row[0] or 0

        for sql_file in sorted(Path(migrations_dir).glob("*.sql")):
            version = int(sql_file.name.split("_")[0])
            if version > current:
                try:
                    self.conn.execute("BEGIN")
                    # executescript auto-commits, so we split statements manually
                    sql_text = sql_file.read_text()
                    for statement in sql_text.split(";"):
                        statement = statement.strip()
                        if statement:
                            self.conn.execute(statement)
                    self.conn.execute(
                        "INSERT INTO schema_version (version, description) VALUES (?, ?)",
                        (version, sql_file.stem),
                    )
                    self.conn.commit()
                    logger.debug("Applied migration %s", sql_file.name)
                except Exception:
                    self.conn.rollback()
                    raise

    # ── Transactions ────────────────────────────────────────

    def _insert_transaction_row(self, txn: Transaction) -> None:
        self.conn.execute(
            "INSERT INTO transactions"
            " (id, type, name, amount, due_date, cleared, note, contact,"
            "  returns_percentage, recurring_id, created_at, updated_at)"
            " VALUES (?,?,?,?,?,?,?,?,?,?,?,?)",
            (txn.id, txn.type, txn.name, txn.amount, txn.due_date,
             int(txn.cleared), txn.note, txn.contact,
             txn.returns_percentage, txn.recurring_id,
             txn.created_at, txn.updated_at),
        )

    def insert_transaction(self, txn: Transaction) -> Transaction:
        try:
            self._insert_transaction_row(txn)
            for p in txn.payments:
                self._insert_payment_row(p)
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return txn

    def get_transaction(self, txn_id: str) -> Transaction | None:
        row = self.conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (txn_id,)
        ).fetchone()
        if row is None:
            return None
        txn = self._row_to_transaction(row)
        txn.payments = self.get_payments(txn_id)
        return txn

    def list_transactions(self, include_cleared: bool = True) -> list[Transaction]:
        sql = "SELECT * FROM transactions"
        if not include_cleared:
            sql += " WHERE cleared = 0"
        sql += " ORDER BY created_at DESC, rowid DESC"
        txns = [self._row_to_transaction(r) for r in self.conn.execute(sql).fetchall()]
        payment_map = self.get_payments_by_transaction_ids([t.id for t in txns])
        for t in txns:
            t.payments = payment_map.get(t.id, [])
        return txns

    _TXN_UPDATE_COLS = frozenset({
        "type", "name", "amount", "due_date", "note", "contact",
        "returns_percentage",
    })

    def update_transaction(self, txn_id: str, **fields) -> Transaction:
        # Reject unknown column names to prevent silent bugs
        unknown = set(fields.keys()) - self._TXN_UPDATE_COLS
        if unknown:
            raise ValueError(f"Unknown columns for update_transaction: {unknown}")
        if not fields:
            raise ValueError("update_transaction requires at least one column")

        cols = sorted(fields)
        sets = [f"{col} = ?" for col in cols] + ["updated_at = ?"]
        vals: list = [fields[col] for col in cols] + [_now(), txn_id]
        try:
            cur = self.conn.execute(
                f"UPDATE transactions SET {', '.join(sets)} WHERE id = ?", vals
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        if cur.rowcount == 0:
            raise RecordNotFoundError("transactions", txn_id)
        return self.get_transaction(txn_id)

    def delete_transaction(self, txn_id: str) -> None:
        try:
            cur = self.conn.execute("DELETE FROM transactions WHERE id = ?", (txn_id,))
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        if cur.rowcount == 0:
            raise RecordNotFoundError("transactions", txn_id)

    def settle_transaction(self, txn_id: str, cleared: bool = True) -> Transaction:
        try:
            cur = self.conn.execute(
                "UPDATE transactions SET cleared = ?, updated_at = ? WHERE id = ?",
                (int(cleared), _now(), txn_id),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        if cur.rowcount == 0:
            raise RecordNotFoundError("transactions", txn_id)
        return self.get_transaction(txn_id)

    # ── Payments ────────────────────────────────────────────

    def _insert_payment_row(self, p: Payment) -> None:
        self.conn.execute(
            "INSERT INTO payments (id, transaction_id, amount, date, note, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (p.id, p.transaction_id, p.amount, p.date, p.note, p.created_at),
        )

    def add_payment(self, payment: Payment) -> Payment:
        if self.conn.execute(
            "SELECT 1 FROM transactions WHERE id = ?", (payment.transaction_id,)
        ).fetchone() is None:
            raise RecordNotFoundError("transactions", payment.transaction_id)
        try:
            self._insert_payment_row(payment)
            self.conn.execute(
                "UPDATE transactions SET updated_at = ? WHERE id = ?",
                (_now(), payment.transaction_id),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return payment

    def get_payments(self, txn_id: str) -> list[Payment]:
        rows = self.conn.execute(
            "SELECT * FROM payments WHERE transaction_id = ?"
            " ORDER BY date, rowid",
            (txn_id,),
        ).fetchall()
        return [self._row_to_payment(r) for r in rows]

    def get_payments_by_transaction_ids(
        self, txn_ids: list[str]
    ) -> dict[str, list[Payment]]:
        """Batch-fetch payments for many transactions.

        Chunked to stay within SQLite's variable limit.
        """
        result: dict[str, list[Payment]] = {}
        chunk_size = 500
        for i in range(0, len(txn_ids), chunk_size):
            chunk = txn_ids[i : i + chunk_size]
            ph = ",".join("?" * len(chunk))
            rows = self.conn.execute(
                f"SELECT * FROM payments WHERE transaction_id IN ({ph})"
                f" ORDER BY date, rowid",
                chunk,
            ).fetchall()
            for r in rows:
                result.setdefault(r["transaction_id"], []).append(
                    self._row_to_payment(r)
                )
        return result

    # ── Recurring templates ─────────────────────────────────

    def insert_recurring(self, rec: RecurringTransaction) -> RecurringTransaction:
        try:
            self.conn.execute(
                "INSERT INTO recurring_transactions"
                " (id, type, name, amount, frequency, start_date, next_due_date,"
                "  last_generated_date, active, auto_create_transaction, category,"
                "  note, contact, created_at, updated_at)"
                " VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
                (rec.id, rec.type, rec.name, rec.amount, rec.frequency,
                 rec.start_date, rec.next_due_date, rec.last_generated_date,
                 int(rec.active), int(rec.auto_create_transaction),
                 rec.category, rec.note, rec.contact,
                 rec.created_at, rec.updated_at),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return rec

    def get_recurring(self, rec_id: str) -> RecurringTransaction | None:
        row = self.conn.execute(
            "SELECT * FROM recurring_transactions WHERE id = ?", (rec_id,)
        ).fetchone()
        return self._row_to_recurring(row) if row else None

    def list_recurring(self, active_only: bool = False) -> list[RecurringTransaction]:
        sql = "SELECT * FROM recurring_transactions"
        if active_only:
            sql += " WHERE active = 1"
        sql += " ORDER BY next_due_date, rowid"
        return [self._row_to_recurring(r) for r in self.conn.execute(sql).fetchall()]

    def set_recurring_active(self, rec_id: str, active: bool) -> RecurringTransaction:
        try:
            cur = self.conn.execute(
                "UPDATE recurring_transactions SET active = ?, updated_at = ?"
                " WHERE id = ?",
                (int(active), _now(), rec_id),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        if cur.rowcount == 0:
            raise RecordNotFoundError("recurring_transactions", rec_id)
        return self.get_recurring(rec_id)

    def delete_recurring(self, rec_id: str) -> None:
        try:
            cur = self.conn.execute(
                "DELETE FROM recurring_transactions WHERE id = ?", (rec_id,)
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        if cur.rowcount == 0:
            raise RecordNotFoundError("recurring_transactions", rec_id)

    def apply_rollforward(self, plan: RollforwardPlan) -> Transaction | None:
        """Compare-and-swap on next_due_date, plus the instance insert, in one transaction."""
        try:
            self.conn.execute("BEGIN IMMEDIATE")
            cur = self.conn.execute(
                "UPDATE recurring_transactions"
                " SET next_due_date = ?, last_generated_date = ?, updated_at = ?"
                " WHERE id = ? AND active = 1 AND next_due_date = ?"
                "   AND (last_generated_date IS NULL OR last_generated_date != ?)",
                (plan.new_next_due_date, plan.new_last_generated_date, _now(),
                 plan.recurring_id, plan.expected_next_due_date,
                 plan.expected_next_due_date),
            )
            if cur.rowcount == 0:
                self.conn.rollback()
                return None
            self._insert_transaction_row(plan.transaction)
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            # Only the (recurring_id, due_date) index means "already materialized"
            if "UNIQUE" not in str(e):
                raise
            logger.warning(
                "Occurrence %s of recurring %s already exists",
                plan.expected_next_due_date, plan.recurring_id,
            )
            return None
        except Exception:
            self.conn.rollback()
            raise
        return plan.transaction

    # ── Row Converters ──────────────────────────────────────

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"], type=row["type"], name=row["name"],
            amount=row["amount"], due_date=row["due_date"],
            cleared=bool(row["cleared"]), note=row["note"],
            contact=row["contact"],
            returns_percentage=row["returns_percentage"],
            recurring_id=row["recurring_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_payment(row: sqlite3.Row) -> Payment:
        return Payment(
            id=row["id"], transaction_id=row["transaction_id"],
            amount=row["amount"], date=row["date"], note=row["note"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_recurring(row: sqlite3.Row) -> RecurringTransaction:
        return RecurringTransaction(
            id=row["id"], type=row["type"], name=row["name"],
            amount=row["amount"], frequency=row["frequency"],
            start_date=row["start_date"],
            next_due_date=row["next_due_date"],
            last_generated_date=row["last_generated_date"],
            active=bool(row["active"]),
            auto_create_transaction=bool(row["auto_create_transaction"]),
            category=row["category"], note=row["note"],
            contact=row["contact"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
