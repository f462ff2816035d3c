"""Base store: the persistence interface the ledger core talks to.

Any backend (SQLite here, a hosted BaaS elsewhere) that implements
LedgerStore can drive the recurring processor and the CLI.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .models import Payment, RecurringTransaction, Transaction

if TYPE_CHECKING:
    from debtledger.ledger.recurring import RollforwardPlan


class RecordNotFoundError(Exception):
    """Raised when an update or delete targets an id that does not exist."""

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"No {table} row with id '{record_id}'")


class LedgerStore(ABC):
    """Abstract persistence collaborator for transactions and recurring templates."""

    # ── Transactions ────────────────────────────────────────

    @abstractmethod
    def insert_transaction(self, txn: Transaction) -> Transaction:
        """Persist a new transaction together with any payments already attached."""

    @abstractmethod
    def get_transaction(self, txn_id: str) -> Transaction | None:
        """Return the transaction with its payments, or None."""

    @abstractmethod
    def list_transactions(self, include_cleared: bool = True) -> list[Transaction]:
        """Return transactions in a stable order, newest first."""

    @abstractmethod
    def update_transaction(self, txn_id: str, **fields) -> Transaction:
        """Update editable columns and return the refreshed record."""

    @abstractmethod
    def delete_transaction(self, txn_id: str) -> None:
        """Delete a transaction and its payments."""

    @abstractmethod
    def settle_transaction(self, txn_id: str, cleared: bool = True) -> Transaction:
        """Mark a transaction cleared (or reopen it)."""

    @abstractmethod
    def add_payment(self, payment: Payment) -> Payment:
        """Record a partial payment against a transaction."""

    @abstractmethod
    def get_payments(self, txn_id: str) -> list[Payment]:
        """Return payments for a transaction, oldest first."""

    # ── Recurring templates ─────────────────────────────────

    @abstractmethod
    def insert_recurring(self, rec: RecurringTransaction) -> RecurringTransaction:
        """Persist a new recurring template."""

    @abstractmethod
    def get_recurring(self, rec_id: str) -> RecurringTransaction | None:
        """Return a recurring template, or None."""

    @abstractmethod
    def list_recurring(self, active_only: bool = False) -> list[RecurringTransaction]:
        """Return recurring templates ordered by next due date."""

    @abstractmethod
    def set_recurring_active(self, rec_id: str, active: bool) -> RecurringTransaction:
        """Pause or resume a recurring template."""

    @abstractmethod
    def delete_recurring(self, rec_id: str) -> None:
        """Delete a recurring template (materialized instances are kept)."""

    @abstractmethod
    def apply_rollforward(self, plan: RollforwardPlan) -> Transaction | None:
        """Atomically materialize one occurrence and advance its template.

        Must insert plan.transaction and move the template to
        plan.new_next_due_date only if the stored next_due_date still equals
        plan.expected_next_due_date and last_generated_date differs from it.
        Returns the inserted transaction, or None if the check failed
        (another writer already materialized this occurrence).
        """
