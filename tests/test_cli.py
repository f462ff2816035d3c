"""Tests for debtledger.cli: argument parsing and command handlers.

Handlers run against a real SQLite file in tmp_path (each command opens
and closes its own connection) and the fixture config directory.
"""

from __future__ import annotations

import argparse
import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

from debtledger.cli import build_parser, cmd_push, main
from debtledger.database.repository import Repository
from tests.conftest import FIXTURE_CONFIG_DIR


# ── Helpers ──────────────────────────────────────────────


@pytest.fixture
def ledger_env(tmp_path, monkeypatch):
    """Point the CLI at a temp database and the fixture config."""
    db_path = tmp_path / "ledger.db"
    monkeypatch.setenv("LEDGER_DB_PATH", str(db_path))
    monkeypatch.setenv("LEDGER_CONFIG_DIR", str(FIXTURE_CONFIG_DIR))
    monkeypatch.delenv("LEDGER_MIGRATIONS_DIR", raising=False)
    monkeypatch.delenv("LEDGER_SPREADSHEET_ID", raising=False)
    monkeypatch.delenv("LEDGER_CREDENTIALS", raising=False)
    return db_path


def _run(*argv: str) -> int:
    with patch("debtledger.cli._setup_logging"):
        with pytest.raises(SystemExit) as exc:
            main(list(argv))
    return exc.value.code


def _stored_transactions(db_path):
    repo = Repository(str(db_path))
    try:
        return repo.list_transactions()
    finally:
        repo.close()


def _stored_recurring(db_path):
    repo = Repository(str(db_path))
    try:
        return repo.list_recurring()
    finally:
        repo.close()


# ── Argument parsing ─────────────────────────────────────


class TestCliHelp:
    def test_help_exits_zero(self):
        result = subprocess.run(
            [sys.executable, "-m", "debtledger.cli", "--help"],
            capture_output=True, text=True,
        )
        assert result.returncode == 0
        assert "debtledger debt and credit tracker" in result.stdout

    def test_all_subcommands_listed(self):
        help_text = build_parser().format_help()
        for cmd in ("add", "pay", "settle", "delete", "list", "status",
                    "remind", "recurring", "export", "push"):
            assert cmd in help_text

    def test_invalid_date_is_argparse_error(self, ledger_env):
        assert _run("status", "--date", "15/03/2026") == 2

    def test_unknown_type_rejected(self, ledger_env):
        assert _run("add", "loan", "Alice", "10") == 2


class TestMainDispatch:
    def test_main_dispatches_to_handler(self):
        with patch("debtledger.cli._COMMANDS", {"status": MagicMock(return_value=0)}):
            assert _run("status") == 0

    def test_main_no_command_shows_help(self, capsys):
        assert _run() == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_handler_exit_code_propagates(self):
        with patch("debtledger.cli._COMMANDS", {"status": MagicMock(return_value=1)}):
            assert _run("status") == 1


# ── Transactions ─────────────────────────────────────────


class TestCmdAdd:
    def test_add_credit(self, ledger_env, capsys):
        code = _run("add", "credit", "Alice Smith", "250", "--due", "2026-03-20",
                    "--note", "concert", "--returns", "5")
        assert code == 0
        assert "Added credit 'Alice Smith' for 250.00" in capsys.readouterr().out
        (txn,) = _stored_transactions(ledger_env)
        assert txn.due_date == "2026-03-20"
        assert txn.note == "concert"
        assert txn.returns_percentage == 5.0

    def test_add_sanitizes_name(self, ledger_env):
        assert _run("add", "debt", "<b>Bob</b>", "10") == 0
        assert _stored_transactions(ledger_env)[0].name == "Bob"

    def test_add_invalid_reports_errors(self, ledger_env, capsys):
        code = _run("add", "debt", "Bob", "0", "--due", "tomorrow")
        out = capsys.readouterr().out
        assert code == 1
        assert "Error: Amount must be a positive number less than 999,999,999." in out
        assert "Error: Due date must be in YYYY-MM-DD format." in out
        assert not ledger_env.exists() or _stored_transactions(ledger_env) == []


class TestCmdPaySettleDelete:
    def test_pay_reports_remaining(self, ledger_env, capsys):
        _run("add", "credit", "Alice", "100")
        txn_id = _stored_transactions(ledger_env)[0].id
        capsys.readouterr()
        assert _run("pay", txn_id, "40", "--date", "2026-03-01") == 0
        out = capsys.readouterr().out
        assert "Recorded payment of £40.00 on 'Alice'. Remaining: £60.00" in out
        (txn,) = _stored_transactions(ledger_env)
        assert txn.amount == 100.0
        assert txn.cleared is False
        assert txn.payments[0].date == "2026-03-01"

    def test_pay_unknown_transaction(self, ledger_env, capsys):
        assert _run("pay", "nope", "5") == 1
        assert "Error: Transaction 'nope' not found." in capsys.readouterr().out

    def test_pay_rejects_non_positive_amount(self, ledger_env, capsys):
        _run("add", "credit", "Alice", "100")
        txn_id = _stored_transactions(ledger_env)[0].id
        capsys.readouterr()
        assert _run("pay", txn_id, "0") == 1
        out = capsys.readouterr().out
        assert "Error: Amount must be a positive number less than 999,999,999." in out
        assert _stored_transactions(ledger_env)[0].payments == []

    def test_settle_and_reopen(self, ledger_env, capsys):
        _run("add", "debt", "Bob", "20")
        txn_id = _stored_transactions(ledger_env)[0].id
        assert _run("settle", txn_id) == 0
        assert _stored_transactions(ledger_env)[0].cleared is True
        assert _run("settle", txn_id, "--reopen") == 0
        assert _stored_transactions(ledger_env)[0].cleared is False
        assert "Reopened 'Bob'." in capsys.readouterr().out

    def test_settle_unknown(self, ledger_env):
        assert _run("settle", "nope") == 1

    def test_delete(self, ledger_env):
        _run("add", "debt", "Bob", "20")
        txn_id = _stored_transactions(ledger_env)[0].id
        assert _run("delete", txn_id) == 0
        assert _stored_transactions(ledger_env) == []
        assert _run("delete", txn_id) == 1


class TestCmdList:
    def test_empty(self, ledger_env, capsys):
        assert _run("list") == 0
        assert "No transactions found." in capsys.readouterr().out

    def test_ranked_by_urgency(self, ledger_env, capsys):
        _run("add", "credit", "Later", "10", "--due", "2026-05-01")
        _run("add", "debt", "Overdue", "10", "--due", "2026-03-01")
        capsys.readouterr()
        assert _run("list", "--date", "2026-03-15") == 0
        out = capsys.readouterr().out
        assert out.index("Overdue") < out.index("Later")
        assert "overdue 14d" in out

    def test_settled_hidden_unless_all(self, ledger_env, capsys):
        _run("add", "debt", "Done", "10")
        _run("settle", _stored_transactions(ledger_env)[0].id)
        capsys.readouterr()
        _run("list")
        assert "No transactions found." in capsys.readouterr().out
        _run("list", "--all")
        assert "settled" in capsys.readouterr().out

    def test_search(self, ledger_env, capsys):
        _run("add", "credit", "Alice", "10")
        _run("add", "credit", "Bob", "10", "--contact", "bob@example.com")
        capsys.readouterr()
        _run("list", "--search", "BOB@")
        out = capsys.readouterr().out
        assert "Bob" in out
        assert "Alice" not in out


class TestCmdStatus:
    def test_status_empty_database(self, ledger_env, capsys):
        assert _run("status", "--date", "2026-03-15") == 0
        out = capsys.readouterr().out
        assert "debtledger Status" in out
        assert "Owed to you:         £0.00" in out
        assert "No critical priority." in out
        assert "Alerts: 0 due soon or overdue" in out

    def test_status_totals_priority_and_alerts(self, ledger_env, capsys):
        _run("add", "credit", "Alice Smith", "250", "--due", "2026-03-20")
        _run("add", "debt", "Bob", "100", "--due", "2026-06-01")
        capsys.readouterr()
        assert _run("status", "--date", "2026-03-15") == 0
        out = capsys.readouterr().out
        assert "Owed to you:         £250.00" in out
        assert "You owe:             £100.00" in out
        assert "Net position:        £150.00" in out
        # credit due in 5 days: 50 + 150 + 25 + 10
        assert "Top priority: Alice Smith (credit, £250.00, due in 5d) score=235" in out
        assert "Alerts: 1 due soon or overdue" in out

    def test_status_shows_upcoming_recurring(self, ledger_env, capsys):
        _run("recurring", "add", "debt", "Gym", "45", "weekly", "2026-03-10")
        capsys.readouterr()
        _run("status", "--date", "2026-03-15")
        out = capsys.readouterr().out
        assert "Upcoming recurring: 1" in out
        assert "2026-03-17" in out


class TestCmdRemind:
    def test_default_level(self, ledger_env, capsys):
        _run("add", "credit", "Alice Smith", "1234.5", "--note", "the concert")
        txn_id = _stored_transactions(ledger_env)[0].id
        capsys.readouterr()
        assert _run("remind", txn_id) == 0
        out = capsys.readouterr().out
        assert "[Court Jester]" in out
        assert "Hey Alice!" in out
        assert "£1,234.50 pending from the concert" in out

    def test_level_and_remaining(self, ledger_env, capsys):
        _run("add", "credit", "Alice", "100")
        txn_id = _stored_transactions(ledger_env)[0].id
        _run("pay", txn_id, "25")
        capsys.readouterr()
        assert _run("remind", txn_id, "--level", "executioner", "--remaining") == 0
        assert "Silence is acceptance of debt. £75.00." in capsys.readouterr().out

    def test_unknown_transaction(self, ledger_env, capsys):
        assert _run("remind", "nope") == 1


class TestCmdExport:
    def test_export_to_path(self, ledger_env, tmp_path, capsys):
        _run("add", "credit", "Alice", "100")
        target = tmp_path / "out" / "ledger.csv"
        capsys.readouterr()
        assert _run("export", "--output", str(target)) == 0
        assert f"Exported 1 transaction(s) to {target}" in capsys.readouterr().out
        lines = target.read_text().splitlines()
        assert lines[0].startswith("Date Added,Type,Name")
        assert ",Incoming,Alice,100.00," in lines[1]


# ── Recurring ────────────────────────────────────────────


class TestCmdRecurring:
    def test_add_sets_first_due_one_period_after_start(self, ledger_env, capsys):
        assert _run("recurring", "add", "debt", "Rent", "1200", "monthly", "2026-01-01",
                    "--category", "rent") == 0
        assert "next due 2026-02-01" in capsys.readouterr().out
        (rec,) = _stored_recurring(ledger_env)
        assert rec.start_date == "2026-01-01"
        assert rec.next_due_date == "2026-02-01"
        assert rec.category == "rent"
        assert rec.auto_create_transaction is True

    def test_add_invalid_start(self, ledger_env, capsys):
        assert _run("recurring", "add", "debt", "Rent", "1200", "monthly", "soon") == 1
        assert "Start date is required" in capsys.readouterr().out

    def test_list_states(self, ledger_env, capsys):
        _run("recurring", "add", "debt", "Rent", "1200", "monthly", "2026-01-01")
        _run("recurring", "add", "credit", "Salary", "3000", "monthly", "2026-01-25", "--manual")
        capsys.readouterr()
        assert _run("recurring", "list") == 0
        out = capsys.readouterr().out
        assert "Recurring transactions (2):" in out
        assert "manual" in out
        assert "Monthly" in out

    def test_list_empty(self, ledger_env, capsys):
        _run("recurring", "list")
        assert "No recurring transactions." in capsys.readouterr().out

    def test_process_catches_up_then_is_idempotent(self, ledger_env, capsys):
        _run("recurring", "add", "debt", "Rent", "1200", "monthly", "2026-01-01")
        capsys.readouterr()
        assert _run("recurring", "process", "--date", "2026-03-15") == 0
        assert "2 transactions auto-created from recurring" in capsys.readouterr().out
        assert _run("recurring", "process", "--date", "2026-03-15") == 0
        assert "No recurring transactions due." in capsys.readouterr().out
        due_dates = sorted(t.due_date for t in _stored_transactions(ledger_env))
        assert due_dates == ["2026-02-01", "2026-03-01"]
        assert all(t.name == "Rent (Auto)" for t in _stored_transactions(ledger_env))

    def test_process_one_per_pass(self, ledger_env, capsys):
        _run("recurring", "add", "debt", "Rent", "1200", "monthly", "2026-01-01")
        capsys.readouterr()
        assert _run("recurring", "process", "--date", "2026-03-15", "--one") == 0
        assert "1 transaction auto-created from recurring" in capsys.readouterr().out
        assert _stored_recurring(ledger_env)[0].next_due_date == "2026-03-01"

    def test_paused_not_processed(self, ledger_env, capsys):
        _run("recurring", "add", "debt", "Rent", "1200", "monthly", "2026-01-01")
        rec_id = _stored_recurring(ledger_env)[0].id
        assert _run("recurring", "pause", rec_id) == 0
        capsys.readouterr()
        _run("recurring", "process", "--date", "2026-03-15")
        assert "No recurring transactions due." in capsys.readouterr().out
        assert _run("recurring", "resume", rec_id) == 0
        assert _stored_recurring(ledger_env)[0].active is True

    def test_delete(self, ledger_env):
        _run("recurring", "add", "debt", "Rent", "1200", "monthly", "2026-01-01")
        rec_id = _stored_recurring(ledger_env)[0].id
        assert _run("recurring", "delete", rec_id) == 0
        assert _stored_recurring(ledger_env) == []
        assert _run("recurring", "pause", rec_id) == 1

    def test_no_subcommand(self, ledger_env, capsys):
        assert _run("recurring") == 1
        assert "Usage: debtledger recurring" in capsys.readouterr().out


# ── Push ─────────────────────────────────────────────────


class TestCmdPush:
    def test_push_no_sheets_configured(self, ledger_env, capsys):
        assert _run("push") == 1
        assert "not configured" in capsys.readouterr().out.lower()

    def test_push_calls_full_rebuild(self, capsys):
        mock_sheets = MagicMock()
        mock_result = MagicMock()
        mock_result.rows_pushed = 12
        mock_sheets.full_rebuild.return_value = [mock_result, mock_result]
        mock_repo = MagicMock()

        with patch("debtledger.cli._get_sheets", return_value=mock_sheets), \
             patch("debtledger.cli._get_repo", return_value=mock_repo), \
             patch("debtledger.cli._get_config", return_value=MagicMock()):
            ret = cmd_push(argparse.Namespace(command="push"))

        assert ret == 0
        mock_sheets.full_rebuild.assert_called_once_with(mock_repo)
        mock_repo.close.assert_called_once()
        assert "Pushed 24 rows across 2 sheets" in capsys.readouterr().out
