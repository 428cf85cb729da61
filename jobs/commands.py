# jobs/commands.py
"""CLI entry points for the external scheduler (cron or similar)."""

import click
from flask.cli import AppGroup

from jobs.pending_payments import check_pending_payments
from jobs.settlements import settle_unsettled_commissions
from jobs.waiting_timeouts import check_waiting_timeouts
from services.assignment_service import CourierAssignmentService

dispatch_cli = AppGroup('dispatch', help='Courier dispatch jobs.')
payments_cli = AppGroup('payments', help='Payment reconciliation jobs.')


@dispatch_cli.command('assign-pending')
def assign_pending_command():
    """Assign couriers to every pending, unassigned delivery."""
    results = CourierAssignmentService().assign_all_pending_deliveries()
    click.echo(f"Assigned: {results['assigned']}  Without courier: {results['failed']}")


@dispatch_cli.command('check-waiting-timeouts')
def check_waiting_timeouts_command():
    """Cancel deliveries whose waiting timer ran out and refresh live fees. Every minute."""
    results = check_waiting_timeouts()
    click.echo(f"Cancelled: {results['cancelled']}  Fees updated: {results['updated']}")


@dispatch_cli.command('settle-unsettled')
def settle_unsettled_command():
    """Settle commissions for delivered orders that have none. Every five minutes."""
    results = settle_unsettled_commissions()
    click.echo(f"Settled: {results['settled']}  Failed: {results['failed']}")


@payments_cli.command('check-pending')
@click.option('--timeout', 'timeout_minutes', type=int, default=None,
              help='Minutes a payment may stay pending before it is re-checked.')
def check_pending_command(timeout_minutes):
    """Re-check pending payments with the provider. Every two minutes."""
    stats = check_pending_payments(timeout_minutes=timeout_minutes)
    click.echo(
        f"Checked: {stats['total_checked']}  Success: {stats['success']}  "
        f"Failed: {stats['failed']}  Expired: {stats['expired']}  Errors: {stats['errors']}"
    )
