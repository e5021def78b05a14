# Overview: Flask CLI commands for register inspection and ledger integrity checks.

# backend/cashbox/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "cashbox:create_app".
# - Use: python -m flask cash <command> [options]
#
# - python -m flask cash list --tenant acme --branch centro [--status OPEN]
#   List registers of a branch, newest first.
# - python -m flask cash summary --tenant acme --branch centro 12
#   Print the balance summary of one register.
# - python -m flask cash check-integrity --tenant acme --branch centro [--register-id 12]
#   Compare running balances with balances re-derived from history.
#   Without --register-id every OPEN register of the branch is checked.
#   Exits with status 1 when any register drifts.

import click
from flask.cli import with_appcontext

from .money import format_cents
from .services import register_service, summary_service
from .validation import NotFoundError, ValidationError


@click.group('cash')
def cash_group():
    """Cash register ledger commands."""


@cash_group.command('list')
@click.option('--tenant', 'tenant_id', required=True, help='Tenant ID')
@click.option('--branch', 'branch_id', required=True, help='Branch ID')
@click.option('--status', type=click.Choice(['OPEN', 'CLOSED'], case_sensitive=False), help='Filter by status')
@with_appcontext
def list_registers_cli(tenant_id, branch_id, status):
    """List registers of a branch."""
    registers = register_service.list_registers(tenant_id, branch_id, status=status)
    if not registers:
        click.echo("No registers found.")
        return
    for r in registers:
        click.echo(
            f"{r.id:>5}  {r.status:<6}  {r.name:<24}  "
            f"balance={format_cents(r.current_balance_cents):>12}  opened_by={r.opened_by}"
        )


@cash_group.command('summary')
@click.option('--tenant', 'tenant_id', required=True, help='Tenant ID')
@click.option('--branch', 'branch_id', required=True, help='Branch ID')
@click.argument('register_id', type=int)
@with_appcontext
def summary_cli(tenant_id, branch_id, register_id):
    """Print the summary of one register."""
    try:
        summary = summary_service.summarize(tenant_id, branch_id, register_id)
    except (NotFoundError, ValidationError) as e:
        raise click.ClickException(str(e))

    data = summary.to_dict()
    click.echo(f"Register {summary.register_id} ({summary.status})")
    for key in (
        "initial_balance",
        "total_income",
        "total_sales",
        "total_deposits",
        "total_expense",
        "total_refunds",
        "total_withdrawals",
        "total_adjustments",
        "expected_balance",
        "actual_balance",
        "difference",
    ):
        click.echo(f"  {key:<20} {data[key]:>12}")
    for method, amount in data["payment_method_totals"].items():
        click.echo(f"  {method + ' total':<20} {amount:>12}")


@cash_group.command('check-integrity')
@click.option('--tenant', 'tenant_id', required=True, help='Tenant ID')
@click.option('--branch', 'branch_id', required=True, help='Branch ID')
@click.option('--register-id', type=int, help='Check a single register (default: all open registers)')
@with_appcontext
def check_integrity_cli(tenant_id, branch_id, register_id):
    """Detect drift between running balances and movement history."""
    try:
        if register_id is not None:
            register_ids = [register_id]
        else:
            register_ids = [r.id for r in register_service.list_open_registers(tenant_id, branch_id)]

        drifted = 0
        for rid in register_ids:
            check = summary_service.check_ledger_integrity(tenant_id, branch_id, rid)
            if check.is_consistent:
                click.echo(f"PASS register {rid}: balance {format_cents(check.current_balance_cents)}")
            else:
                drifted += 1
                click.echo(
                    f"FAIL register {rid}: current {format_cents(check.current_balance_cents)} "
                    f"vs ledger {format_cents(check.ledger_balance_cents)} "
                    f"(drift {format_cents(check.drift_cents)})"
                )
    except (NotFoundError, ValidationError) as e:
        raise click.ClickException(str(e))

    if not register_ids:
        click.echo("No open registers to check.")
    if drifted:
        raise SystemExit(1)


def register_commands(app):
    app.cli.add_command(cash_group)
