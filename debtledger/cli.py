"""CLI entry point for debtledger.

Commands:
    debtledger add TYPE NAME AMOUNT [--due DATE]   Record a credit or debt
    debtledger pay ID AMOUNT [--date DATE]         Log a partial payment
    debtledger settle ID [--reopen]                Mark settled / reopen
    debtledger delete ID                           Delete a transaction
    debtledger list [--all] [--search Q]           List transactions by urgency
    debtledger status [--date DATE]                Totals, top priority, alerts
    debtledger remind ID [--level LEVEL]           Print reminder text
    debtledger recurring add|list|pause|resume|delete|process
    debtledger export [--output PATH]              Write CSV export
    debtledger push                                Full Google Sheets rebuild
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging based on LEDGER_LOG_LEVEL env var."""
    level = os.environ.get("LEDGER_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_config():
    """Load application config from config directory."""
    from debtledger.config import Config

    config_dir = os.environ.get("LEDGER_CONFIG_DIR", "config")
    return Config(config_dir=config_dir)


def _get_migrations_dir() -> Path:
    """Get the migrations directory path."""
    from debtledger.database.repository import MIGRATIONS_DIR

    return Path(os.environ.get("LEDGER_MIGRATIONS_DIR", MIGRATIONS_DIR))


def _get_repo():
    """Create a Repository connected to the configured database, schema applied."""
    from debtledger.database.repository import Repository

    db_path = os.environ.get("LEDGER_DB_PATH", "ledger.db")
    repo = Repository(db_path=db_path)
    repo.apply_migrations(_get_migrations_dir())
    return repo


def _get_spreadsheet():
    """Open the Google Sheets spreadsheet if configured.

    Returns a gspread.Spreadsheet instance, or None if not configured.
    """
    spreadsheet_id = os.environ.get("LEDGER_SPREADSHEET_ID")
    credentials_path = os.environ.get("LEDGER_CREDENTIALS")

    if not spreadsheet_id or not credentials_path:
        return None

    try:
        import gspread
        from google.oauth2.service_account import Credentials

        scopes = [
            "https://www.googleapis.com/auth/spreadsheets",
            "https://www.googleapis.com/auth/drive",
        ]
        creds = Credentials.from_service_account_file(credentials_path, scopes=scopes)
        gc = gspread.authorize(creds)
        return gc.open_by_key(spreadsheet_id)
    except Exception as e:
        logger.warning("Sheets not available: %s", e)
        return None


def _get_sheets(config):
    """Create a SheetsPush if credentials and spreadsheet ID are configured."""
    spreadsheet = _get_spreadsheet()
    if spreadsheet is None:
        return None

    from debtledger.ledger.rate_limit import RateLimiter
    from debtledger.sheets.push import SheetsPush

    limiter = RateLimiter.from_config(config, "sheets_write")
    return SheetsPush(spreadsheet, limiter=limiter)


def _parse_date_arg(value: str | None) -> date | None:
    """argparse helper: None passes through, invalid dates exit with an error."""
    if value is None:
        return None
    from debtledger.ledger.dates import parse_date

    d = parse_date(value)
    if d is None:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD")
    return d


def _print_errors(errors: list[str]) -> None:
    for err in errors:
        print(f"Error: {err}")


def _describe_due(txn, today: date) -> str:
    from debtledger.ledger.dates import days_until, parse_date

    due = parse_date(txn.due_date)
    if due is None:
        return "no due date"
    diff = days_until(due, today)
    if diff < 0:
        return f"overdue {-diff}d"
    if diff == 0:
        return "due today"
    return f"due in {diff}d"


# ── Command handlers ─────────────────────────────────────


def cmd_add(args: argparse.Namespace) -> int:
    """Validate and record a new credit or debt."""
    from pydantic import ValidationError

    from debtledger.database.models import Transaction
    from debtledger.ledger.validation import TransactionIn, error_messages

    try:
        entry = TransactionIn(
            type=args.type,
            name=args.name,
            amount=args.amount,
            due_date=args.due,
            note=args.note,
            contact=args.contact,
            returns_percentage=args.returns,
        )
    except ValidationError as e:
        _print_errors(error_messages(e))
        return 1

    repo = _get_repo()
    try:
        txn = repo.insert_transaction(Transaction(**entry.to_record()))
    finally:
        repo.close()
    print(f"Added {txn.type} '{txn.name}' for {txn.amount:.2f} ({txn.id})")
    return 0


def cmd_pay(args: argparse.Namespace) -> int:
    """Log a partial payment against a transaction."""
    from pydantic import ValidationError

    from debtledger.database.base import RecordNotFoundError
    from debtledger.database.models import Payment
    from debtledger.ledger.dates import format_date
    from debtledger.ledger.payments import remaining_balance
    from debtledger.ledger.validation import PaymentIn, error_messages

    try:
        entry = PaymentIn(amount=args.amount, date=args.date or date.today(), note=args.note)
    except ValidationError as e:
        _print_errors(error_messages(e))
        return 1

    config = _get_config()
    repo = _get_repo()
    try:
        payment = Payment(
            transaction_id=args.id,
            amount=entry.amount,
            date=format_date(entry.date),
            note=entry.note,
        )
        try:
            repo.add_payment(payment)
        except RecordNotFoundError:
            print(f"Error: Transaction '{args.id}' not found.")
            return 1
        txn = repo.get_transaction(args.id)
    finally:
        repo.close()

    print(
        f"Recorded payment of {config.format_amount(payment.amount)} on '{txn.name}'."
        f" Remaining: {config.format_amount(remaining_balance(txn))}"
    )
    return 0


def cmd_settle(args: argparse.Namespace) -> int:
    """Mark a transaction settled, or reopen it."""
    from debtledger.database.base import RecordNotFoundError

    repo = _get_repo()
    try:
        txn = repo.settle_transaction(args.id, cleared=not args.reopen)
    except RecordNotFoundError:
        print(f"Error: Transaction '{args.id}' not found.")
        return 1
    finally:
        repo.close()
    print(f"{'Reopened' if args.reopen else 'Settled'} '{txn.name}'.")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a transaction and its payments."""
    from debtledger.database.base import RecordNotFoundError

    repo = _get_repo()
    try:
        repo.delete_transaction(args.id)
    except RecordNotFoundError:
        print(f"Error: Transaction '{args.id}' not found.")
        return 1
    finally:
        repo.close()
    print(f"Deleted transaction {args.id}.")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List transactions, outstanding ones ranked by urgency."""
    from debtledger.database.queries import search_transaction_ids
    from debtledger.ledger.payments import remaining_balance
    from debtledger.ledger.urgency import rank

    config = _get_config()
    today = args.date or date.today()
    repo = _get_repo()
    try:
        txns = repo.list_transactions(include_cleared=args.all)
        if args.search:
            matched = set(search_transaction_ids(repo.conn, args.search))
            txns = [t for t in txns if t.id in matched]
    finally:
        repo.close()

    if not txns:
        print("No transactions found.")
        return 0

    # Outstanding first by score, then settled in stored order
    scored = rank(txns, today, use_returns=config.score_with_returns)
    scored += [(t, None) for t in txns if t.cleared]

    print(f"Transactions ({len(scored)}):")
    print("-" * 80)
    for t, score in scored:
        marker = "settled" if score is None else f"{score:>5}"
        print(
            f"  {marker:>7}  {t.type:<6}  {t.name[:28]:<28}"
            f"  {config.format_amount(remaining_balance(t)):>14}"
            f"  {_describe_due(t, today):<14}  {t.id}"
        )
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show ledger totals, the top-priority item and due/overdue alerts."""
    from debtledger.database.queries import get_ledger_totals, get_status_counts
    from debtledger.ledger.recurring import recurring_due_soon
    from debtledger.ledger.urgency import notifications, top_priority

    config = _get_config()
    today = args.date or date.today()
    repo = _get_repo()
    try:
        totals = get_ledger_totals(repo.conn)
        counts = get_status_counts(repo.conn)
        outstanding = repo.list_transactions(include_cleared=False)
        upcoming = recurring_due_soon(repo.list_recurring(active_only=True), today)
    finally:
        repo.close()

    fmt = config.format_amount
    print("debtledger Status")
    print("=" * 40)
    print(f"  Owed to you:         {fmt(totals['credit'])}")
    print(f"  You owe:             {fmt(totals['debt'])}")
    print(f"  Net position:        {fmt(totals['net'])}")
    print(f"  Outstanding items:   {counts['outstanding']:,}")
    print(f"  Settled items:       {counts['settled']:,}")
    print(f"  Active recurring:    {counts['active_recurring']:,}")

    top = top_priority(
        outstanding, today,
        threshold=config.priority_threshold,
        use_returns=config.score_with_returns,
    )
    if top is not None and top.is_critical:
        t = top.transaction
        print(f"\n  Top priority: {t.name} ({t.type}, {fmt(t.amount)},"
              f" {_describe_due(t, today)}) score={top.score}")
    else:
        print("\n  No critical priority.")

    alerts = notifications(outstanding, today, window_days=config.due_soon_days)
    print(f"  Alerts: {len(alerts)} due soon or overdue")
    for t in alerts:
        print(f"    - {t.name:<28} {fmt(t.amount):>14}  {_describe_due(t, today)}")

    if upcoming:
        print(f"  Upcoming recurring: {len(upcoming)}")
        for rec in upcoming:
            print(f"    - {rec.name:<28} {fmt(rec.amount):>14}  {rec.next_due_date}")
    return 0


def cmd_remind(args: argparse.Namespace) -> int:
    """Print a templated reminder for a transaction."""
    from debtledger.ledger.reminders import render_reminder

    config = _get_config()
    repo = _get_repo()
    try:
        txn = repo.get_transaction(args.id)
    finally:
        repo.close()
    if txn is None:
        print(f"Error: Transaction '{args.id}' not found.")
        return 1

    try:
        reminder = render_reminder(
            txn, config.reminders, level=args.level,
            format_amount=config.format_amount,
            use_remaining=args.remaining,
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print(f"[{reminder.title}]")
    print(reminder.text)
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Write the ledger to a CSV file."""
    from debtledger.export.csv_export import default_filename, write_csv

    repo = _get_repo()
    try:
        txns = repo.list_transactions(include_cleared=True)
    finally:
        repo.close()

    path = write_csv(txns, args.output or Path(default_filename()))
    print(f"Exported {len(txns)} transaction(s) to {path}")
    return 0


def cmd_push(args: argparse.Namespace) -> int:
    """Force a full Google Sheets rebuild."""
    config = _get_config()
    sheets = _get_sheets(config)
    if sheets is None:
        print("Error: Sheets not configured. Set LEDGER_SPREADSHEET_ID and LEDGER_CREDENTIALS.")
        return 1

    repo = _get_repo()
    try:
        print("Rebuilding all sheets from SQLite...")
        results = sheets.full_rebuild(repo)
    finally:
        repo.close()
    total_rows = sum(r.rows_pushed for r in results)
    print(f"Done. Pushed {total_rows} rows across {len(results)} sheets.")
    return 0


# ── Recurring subcommands ────────────────────────────────


def cmd_recurring(args: argparse.Namespace) -> int:
    """Dispatch recurring subcommands."""
    sub = getattr(args, "recurring_command", None)
    handler = _RECURRING_COMMANDS.get(sub)
    if handler is None:
        print("Usage: debtledger recurring {add,list,pause,resume,delete,process}")
        return 1
    return handler(args)


def _cmd_recurring_add(args: argparse.Namespace) -> int:
    """Create a recurring template; the first occurrence is one period after start."""
    from pydantic import ValidationError

    from debtledger.database.models import RecurringTransaction
    from debtledger.ledger.dates import format_date
    from debtledger.ledger.recurring import calculate_next_due_date
    from debtledger.ledger.validation import RecurringIn, error_messages

    try:
        entry = RecurringIn(
            type=args.type,
            name=args.name,
            amount=args.amount,
            frequency=args.frequency,
            start_date=args.start,
            category=args.category,
            note=args.note,
            contact=args.contact,
        )
    except ValidationError as e:
        _print_errors(error_messages(e))
        return 1

    next_due = format_date(calculate_next_due_date(entry.start_date, entry.frequency))
    rec = RecurringTransaction(
        **entry.to_record(),
        next_due_date=next_due,
        auto_create_transaction=not args.manual,
    )
    repo = _get_repo()
    try:
        repo.insert_recurring(rec)
    finally:
        repo.close()
    print(f"Added recurring '{rec.name}' ({rec.frequency}), next due {rec.next_due_date} ({rec.id})")
    return 0


def _cmd_recurring_list(args: argparse.Namespace) -> int:
    from debtledger.ledger.recurring import frequency_label

    config = _get_config()
    repo = _get_repo()
    try:
        templates = repo.list_recurring(active_only=False)
    finally:
        repo.close()

    if not templates:
        print("No recurring transactions.")
        return 0

    print(f"Recurring transactions ({len(templates)}):")
    print("-" * 80)
    for rec in templates:
        state = "active" if rec.active else "paused"
        if rec.active and not rec.auto_create_transaction:
            state = "manual"
        print(
            f"  {state:<7}  {rec.type:<6}  {rec.name[:24]:<24}"
            f"  {config.format_amount(rec.amount):>12}"
            f"  {frequency_label(rec.frequency):<13}  next {rec.next_due_date}  {rec.id}"
        )
    return 0


def _set_active(args: argparse.Namespace, active: bool) -> int:
    from debtledger.database.base import RecordNotFoundError

    repo = _get_repo()
    try:
        rec = repo.set_recurring_active(args.id, active)
    except RecordNotFoundError:
        print(f"Error: Recurring transaction '{args.id}' not found.")
        return 1
    finally:
        repo.close()
    print(f"{'Resumed' if active else 'Paused'} recurring '{rec.name}'.")
    return 0


def _cmd_recurring_pause(args: argparse.Namespace) -> int:
    return _set_active(args, False)


def _cmd_recurring_resume(args: argparse.Namespace) -> int:
    return _set_active(args, True)


def _cmd_recurring_delete(args: argparse.Namespace) -> int:
    from debtledger.database.base import RecordNotFoundError

    repo = _get_repo()
    try:
        repo.delete_recurring(args.id)
    except RecordNotFoundError:
        print(f"Error: Recurring transaction '{args.id}' not found.")
        return 1
    finally:
        repo.close()
    print(f"Deleted recurring {args.id}.")
    return 0


def _cmd_recurring_process(args: argparse.Namespace) -> int:
    """Materialize due recurring occurrences."""
    from debtledger.ledger.recurring import RecurringProcessor

    config = _get_config()
    repo = _get_repo()
    try:
        processor = RecurringProcessor.from_config(repo, config)
        if args.one:
            processor.catch_up = False
        result = processor.process(today=args.date or date.today())
    finally:
        repo.close()

    if result.created_count == 0:
        print("No recurring transactions due.")
    elif result.created_count == 1:
        print("1 transaction auto-created from recurring")
    else:
        print(f"{result.created_count} transactions auto-created from recurring")
    for txn in result.created:
        print(f"  {txn.due_date}  {txn.name}  {config.format_amount(txn.amount)}")
    if result.conflicts or result.errors:
        print(f"  conflicts={result.conflicts} errors={result.errors}")
    return 1 if result.errors else 0


_RECURRING_COMMANDS = {
    "add": _cmd_recurring_add,
    "list": _cmd_recurring_list,
    "pause": _cmd_recurring_pause,
    "resume": _cmd_recurring_resume,
    "delete": _cmd_recurring_delete,
    "process": _cmd_recurring_process,
}


# ── Main entry point ─────────────────────────────────────


_COMMANDS = {
    "add": cmd_add,
    "pay": cmd_pay,
    "settle": cmd_settle,
    "delete": cmd_delete,
    "list": cmd_list,
    "status": cmd_status,
    "remind": cmd_remind,
    "recurring": cmd_recurring,
    "export": cmd_export,
    "push": cmd_push,
}


def build_parser() -> argparse.ArgumentParser:
    from debtledger.database.models import (
        FREQUENCIES,
        RECURRING_CATEGORIES,
        TRANSACTION_TYPES,
    )
    from debtledger.ledger.reminders import DEFAULT_LEVEL, LEVELS

    parser = argparse.ArgumentParser(
        prog="debtledger",
        description="debtledger debt and credit tracker",
    )
    subparsers = parser.add_subparsers(dest="command")

    # add
    add_p = subparsers.add_parser("add", help="Record a credit or debt")
    add_p.add_argument("type", choices=TRANSACTION_TYPES, help="credit (owed to you) or debt (you owe)")
    add_p.add_argument("name", help="Counterparty or label")
    add_p.add_argument("amount", type=float, help="Amount")
    add_p.add_argument("--due", help="Due date (YYYY-MM-DD)")
    add_p.add_argument("--note", help="Free-text note")
    add_p.add_argument("--contact", help="Contact details")
    add_p.add_argument("--returns", type=float, help="Expected returns percentage (0-100)")

    # pay
    pay_p = subparsers.add_parser("pay", help="Log a partial payment")
    pay_p.add_argument("id", help="Transaction ID")
    pay_p.add_argument("amount", type=float, help="Payment amount")
    pay_p.add_argument("--date", type=_parse_date_arg, help="Payment date (default: today)")
    pay_p.add_argument("--note", help="Payment note")

    # settle
    settle_p = subparsers.add_parser("settle", help="Mark a transaction settled")
    settle_p.add_argument("id", help="Transaction ID")
    settle_p.add_argument("--reopen", action="store_true", help="Mark as outstanding again")

    # delete
    delete_p = subparsers.add_parser("delete", help="Delete a transaction")
    delete_p.add_argument("id", help="Transaction ID")

    # list
    list_p = subparsers.add_parser("list", help="List transactions by urgency")
    list_p.add_argument("--all", action="store_true", help="Include settled transactions")
    list_p.add_argument("--search", help="Filter by name, contact or note")
    list_p.add_argument("--date", type=_parse_date_arg, help="Evaluate as of this date")

    # status
    status_p = subparsers.add_parser("status", help="Show totals, top priority and alerts")
    status_p.add_argument("--date", type=_parse_date_arg, help="Evaluate as of this date")

    # remind
    remind_p = subparsers.add_parser("remind", help="Print a reminder message")
    remind_p.add_argument("id", help="Transaction ID")
    remind_p.add_argument("--level", choices=LEVELS, default=DEFAULT_LEVEL, help="Escalation level")
    remind_p.add_argument("--remaining", action="store_true", help="Quote the remaining balance")

    # recurring
    rec_p = subparsers.add_parser("recurring", help="Manage recurring transactions")
    rec_sub = rec_p.add_subparsers(dest="recurring_command")
    rec_add_p = rec_sub.add_parser("add", help="Add a recurring template")
    rec_add_p.add_argument("type", choices=TRANSACTION_TYPES)
    rec_add_p.add_argument("name")
    rec_add_p.add_argument("amount", type=float)
    rec_add_p.add_argument("frequency", choices=FREQUENCIES)
    rec_add_p.add_argument("start", help="Start date (YYYY-MM-DD)")
    rec_add_p.add_argument("--category", choices=RECURRING_CATEGORIES, default="other")
    rec_add_p.add_argument("--note")
    rec_add_p.add_argument("--contact")
    rec_add_p.add_argument("--manual", action="store_true", help="Never auto-create transactions")
    rec_sub.add_parser("list", help="List recurring templates")
    for name, help_text in (
        ("pause", "Pause a recurring template"),
        ("resume", "Resume a recurring template"),
        ("delete", "Delete a recurring template"),
    ):
        p = rec_sub.add_parser(name, help=help_text)
        p.add_argument("id", help="Recurring template ID")
    rec_proc_p = rec_sub.add_parser("process", help="Materialize due occurrences")
    rec_proc_p.add_argument("--date", type=_parse_date_arg, help="Process as of this date")
    rec_proc_p.add_argument("--one", action="store_true", help="At most one occurrence per template")

    # export
    export_p = subparsers.add_parser("export", help="Export transactions to CSV")
    export_p.add_argument("--output", type=Path, help="Output file path")

    # push
    subparsers.add_parser("push", help="Force full Google Sheets rebuild")

    return parser


def main(argv: list[str] | None = None):
    _setup_logging()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        sys.exit(1)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
