# Overview: Flask CLI command groups for bootstrap, balance audit, and register inspection.

# backend/imeipos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the factory (PowerShell: $env:FLASK_APP="imeipos:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger maintenance:
# - python -m flask ledger audit
#   Recompute every customer/supplier balance from its statement and report drift.
# - python -m flask ledger audit --fix
#   Same, and rewrite drifted cached balances to the statement value.
#
# Register inspection:
# - python -m flask registers sessions --status open --limit 20
#   List recent cash register sessions with optional filters.

import click
from flask.cli import with_appcontext

from .extensions import db
from .validation import format_cents


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Database schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('ledger')
def ledger_group():
    """Balance ledger maintenance commands."""


@ledger_group.command('audit')
@click.option('--fix', is_flag=True, help='Rewrite drifted cached balances')
@with_appcontext
def audit_ledger(fix):
    """
    Compare cached balances with their ledger statements.

    Exits with status 1 when drift is found and --fix was not given.

    Example:
        flask ledger audit
        flask ledger audit --fix
    """
    from .services.balance_service import audit_balances

    drifts = audit_balances(fix=fix)
    if not drifts:
        click.echo("PASS All customer and supplier balances match their ledgers.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Type':<10} {'ID':<8} {'Cached':>15} {'Ledger':>15} {'Drift':>15}")
    click.echo("="*80)
    for drift in drifts:
        click.echo(f"{drift.entity_type:<10} {drift.entity_id:<8} "
                   f"{format_cents(drift.cached_balance):>15} {format_cents(drift.ledger_balance):>15} "
                   f"{format_cents(drift.drift):>15}")
    click.echo("="*80 + "\n")

    if fix:
        click.echo(f"FIXED {len(drifts)} balance(s) rewritten from the ledger.")
    else:
        click.echo(f"FAIL {len(drifts)} balance(s) drifted. Re-run with --fix to correct.")
        raise SystemExit(1)


@click.group('registers')
def registers_group():
    """Cash register inspection commands."""


@registers_group.command('sessions')
@click.option('--status', type=click.Choice(['open', 'closed']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_sessions_cli(status, limit):
    """
    List cash register sessions.

    Example:
        flask registers sessions
        flask registers sessions --status open
    """
    from .services.register_service import list_sessions

    sessions = list_sessions(status=status, limit=limit)
    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<5} {'Number':<10} {'Status':<8} {'Opened':<20} {'By':<15} "
               f"{'Opening':>12} {'Difference':>12} {'Notes'}")
    click.echo("="*110)

    for session in sessions:
        difference = "-"
        if session.difference is not None:
            difference = format_cents(session.difference)
        notes = session.notes[:30] if session.notes else "-"

        click.echo(f"{session.id:<5} {session.session_number:<10} {session.status:<8} "
                   f"{str(session.opened_at)[:19]:<20} {session.opened_by[:15]:<15} "
                   f"{format_cents(session.opening_balance):>12} {difference:>12} {notes}")

    click.echo("="*110 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(registers_group)
