# Overview: Flask CLI command groups for database bootstrap and ledger inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Database bootstrap:
# - python -m flask db-admin init
#   Create all tables that do not exist yet (idempotent).
# - python -m flask db-admin reset --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection:
# - python -m flask ledger audit --user-id <uid>
#   Re-derive every customer's balance and total purchases from stored
#   transactions and report drift. Exits non-zero when anything is out of sync.
# - python -m flask ledger statement --user-id <uid> --customer-id 1
#   Print a customer's transactions, newest first.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import LedgerError
from .services import ledger_service


def _money(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    return f"{sign}{abs(cents) // 100}.{abs(cents) % 100:02d}"


@click.group('db-admin')
def db_admin_group():
    """Database bootstrap commands."""


@db_admin_group.command('init')
@with_appcontext
def init_db():
    """Create all tables (idempotent)."""
    db.create_all()
    click.echo("PASS Tables created")


@db_admin_group.command('reset')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('ledger')
def ledger_group():
    """Customer ledger inspection commands."""


@ledger_group.command('audit')
@click.option('--user-id', required=True, help='Owner whose customers are audited')
@with_appcontext
def audit_ledger_cli(user_id):
    """Compare stored balances with balances re-derived from transactions."""
    rows = ledger_service.audit_ledger(user_id)
    if not rows:
        click.echo("No customers found")
        return

    drifted = 0
    for row in rows:
        status = "OK " if row["in_sync"] else "DRIFT"
        if not row["in_sync"]:
            drifted += 1
        click.echo(
            f"[{status}] #{row['customer_id']} {row['customer_name']}: "
            f"balance {_money(row['balance_cents'])} (expected {_money(row['expected_balance_cents'])}), "
            f"purchases {_money(row['total_purchases_cents'])} "
            f"(expected {_money(row['expected_total_purchases_cents'])})"
        )

    click.echo(f"{len(rows)} customers audited, {drifted} out of sync")
    if drifted:
        raise SystemExit(1)


@ledger_group.command('statement')
@click.option('--user-id', required=True)
@click.option('--customer-id', type=int, required=True)
@with_appcontext
def statement_cli(user_id, customer_id):
    """Print one customer's ledger."""
    try:
        statement = ledger_service.customer_statement(user_id, customer_id)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    customer = statement["customer"]
    click.echo(f"{customer['name']} balance {_money(customer['balance_cents'])}")
    for txn in statement["transactions"]:
        click.echo(
            f"  {txn['created_at']} #{txn['id']} {txn['type']:<7} "
            f"{_money(txn['amount_cents']):>12} due {_money(txn['amount_due_cents'])} [{txn['payment_status']}]"
        )


def register_commands(app):
    app.cli.add_command(db_admin_group)
    app.cli.add_command(ledger_group)
