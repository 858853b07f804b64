# Overview: Flask CLI command groups for schema bootstrap, invoice confirmation, and bulk updates.

# backend/delivery_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Billing:
# - python -m flask billing confirm --customer-id 1 --year 2025 --month 7
#   Confirm (freeze) one customer-month.
# - python -m flask billing confirm-batch --year 2025 --month 7 [--course-id 1]
#   Confirm every customer of a course (or everyone) in one transaction.
# - python -m flask billing unconfirm --customer-id 1 --year 2025 --month 7
#   Remove a confirmation so the month can be edited again.
#
# Bulk updates:
# - python -m flask bulk holiday --course-id 1 --start 2025-07-01 --end 2025-07-07 [--target 2025-06-30]
#   Skip a course's deliveries in a window, optionally delivering the total on a target date.
# - python -m flask bulk price-change --product-id 1 --price 200 --start-month 2025-08 [--course-id 1] [--preview]
#   Move matching patterns to a new unit price.
# - python -m flask bulk logs [--limit 20]
#   List recent operation logs.
# - python -m flask bulk rollback --log-id 3
#   Reverse a logged bulk operation.

import click
from flask.cli import with_appcontext

from .extensions import db
from .validation import NotFoundError, ValidationError
from .services import bulk_update_service, ledger_service, operation_log_service
from .services.bulk_update_service import BatchBlockedError
from .services.concurrency import StorageError
from .services.month_lock import MonthLockedError


_DOMAIN_ERRORS = (ValidationError, NotFoundError, MonthLockedError, BatchBlockedError, StorageError)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables that do not exist yet."""
    from . import models  # noqa: F401

    click.echo("BUILD  Creating tables...")
    db.create_all()
    click.echo("PASS Database ready.")


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


# =============================================================================
# BILLING
# =============================================================================

@click.group('billing')
def billing_group():
    """Invoice confirmation commands."""


@billing_group.command('confirm')
@click.option('--customer-id', type=int, required=True)
@click.option('--year', type=int, required=True)
@click.option('--month', type=int, required=True)
@with_appcontext
def confirm(customer_id, year, month):
    """Confirm one customer-month."""
    try:
        invoice = ledger_service.confirm_invoice(customer_id, year, month)
    except _DOMAIN_ERRORS as e:
        click.echo(f"FAIL Error: {str(e)}")
        return
    click.echo(f"PASS Confirmed customer {customer_id} {year:04d}-{month:02d}: amount {invoice.amount}")


@billing_group.command('confirm-batch')
@click.option('--year', type=int, required=True)
@click.option('--month', type=int, required=True)
@click.option('--course-id', type=int, default=None, help='Limit to one course (default: every customer)')
@with_appcontext
def confirm_batch(year, month, course_id):
    """Confirm every target customer in one transaction."""
    try:
        result = ledger_service.confirm_invoices_batch(year, month, course_id=course_id)
    except _DOMAIN_ERRORS as e:
        click.echo(f"FAIL Error: {str(e)}")
        return
    click.echo(f"PASS Confirmed {result['count']} customer(s) for {year:04d}-{month:02d}")
    for row in result["results"]:
        click.echo(f"  customer {row['customer_id']}: {row['amount']}")


@billing_group.command('unconfirm')
@click.option('--customer-id', type=int, required=True)
@click.option('--year', type=int, required=True)
@click.option('--month', type=int, required=True)
@with_appcontext
def unconfirm(customer_id, year, month):
    """Remove a customer-month confirmation."""
    try:
        result = ledger_service.unconfirm_invoice(customer_id, year, month)
    except _DOMAIN_ERRORS as e:
        click.echo(f"FAIL Error: {str(e)}")
        return
    if result["removed"]:
        click.echo(f"PASS Unconfirmed customer {customer_id} {year:04d}-{month:02d}")
    else:
        click.echo(f"WARN  Customer {customer_id} {year:04d}-{month:02d} was not confirmed")


# =============================================================================
# BULK UPDATES
# =============================================================================

@click.group('bulk')
def bulk_group():
    """Course-wide bulk updates and rollback."""


@bulk_group.command('holiday')
@click.option('--course-id', type=int, required=True)
@click.option('--start', 'start_date', required=True, help='YYYY-MM-DD')
@click.option('--end', 'end_date', required=True, help='YYYY-MM-DD')
@click.option('--target', 'target_date', default=None, help='YYYY-MM-DD aggregate delivery date')
@with_appcontext
def holiday(course_id, start_date, end_date, target_date):
    """Skip deliveries of a course within a window."""
    try:
        result = bulk_update_service.process_holiday(course_id, start_date, end_date, target_date)
    except _DOMAIN_ERRORS as e:
        click.echo(f"FAIL Error: {str(e)}")
        return
    click.echo(
        f"PASS Log {result['operation_log_id']} ({result['op_id']}): "
        f"{result['affected_customers']} customer(s) affected"
    )
    for err in result["errors"]:
        click.echo(f"WARN  customer {err['customer_id']} product {err['product_id']}: {err['message']}")


@bulk_group.command('price-change')
@click.option('--product-id', type=int, required=True)
@click.option('--price', 'new_unit_price', type=int, required=True)
@click.option('--start-month', required=True, help='YYYY-MM')
@click.option('--course-id', type=int, default=None)
@click.option('--preview', is_flag=True, help='Show affected customers without writing')
@with_appcontext
def price_change(product_id, new_unit_price, start_month, course_id, preview):
    """Change a product's unit price from a month on."""
    try:
        if preview:
            result = bulk_update_service.preview_price_change(product_id, new_unit_price, start_month, course_id)
            click.echo(f"LIST {len(result['customers'])} candidate customer(s)")
            for row in result["customers"]:
                click.echo(
                    f"  customer {row['customer_id']}: {row['current_unit_price']} -> {new_unit_price} "
                    f"from {row['effective_start']}"
                )
            for row in result["blocked"]:
                click.echo(f"WARN  customer {row['customer_id']} blocked by {row['year']:04d}-{row['month']:02d}")
            return
        result = bulk_update_service.process_price_change(product_id, new_unit_price, start_month, course_id)
    except BatchBlockedError as e:
        click.echo(f"FAIL {str(e)}")
        for row in e.blocked:
            click.echo(f"  customer {row['customer_id']}: {row['year']:04d}-{row['month']:02d} confirmed")
        return
    except _DOMAIN_ERRORS as e:
        click.echo(f"FAIL Error: {str(e)}")
        return
    click.echo(f"PASS Log {result['operation_log_id']}: {result['affected_customers']} customer(s) updated")


@bulk_group.command('logs')
@click.option('--limit', type=int, default=None)
@with_appcontext
def logs(limit):
    """List recent operation logs, newest first."""
    try:
        rows = operation_log_service.list_operation_logs(limit)
    except _DOMAIN_ERRORS as e:
        click.echo(f"FAIL Error: {str(e)}")
        return
    if not rows:
        click.echo("No operation logs.")
        return
    for log in rows:
        status = "reversed" if log.is_reversed else "active"
        click.echo(f"{log.id:>5}  {log.op_type:<12}  {status:<8}  {log.created_at}  {log.description or ''}")


@bulk_group.command('rollback')
@click.option('--log-id', type=int, required=True)
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def rollback(log_id, yes):
    """Reverse a logged bulk operation."""
    if not yes:
        click.confirm(f"WARN Roll back operation log {log_id}?", abort=True)
    try:
        result = bulk_update_service.rollback_operation(log_id)
    except _DOMAIN_ERRORS as e:
        click.echo(f"FAIL Error: {str(e)}")
        return
    if result["already_reversed"]:
        click.echo(f"WARN  Operation log {log_id} was already reversed")
    else:
        click.echo(f"PASS Rolled back operation log {log_id}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(billing_group)
    app.cli.add_command(bulk_group)
