# Overview: Flask CLI command groups for bootstrap and stock ledger inspection.

# backend/pos_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to pos_ledger (PowerShell: $env:FLASK_APP="pos_ledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection/maintenance:
# - python -m flask ledger stock 1
#   Show current stock and packaging ratios for a product.
# - python -m flask ledger movements --product-id 1 --limit 20
#   List recent stock movements (filter by product and/or --sale-id).
# - python -m flask ledger reconcile [--product-id 1]
#   Verify the movement chain explains current stock; exits 1 on mismatch.
# - python -m flask ledger low-stock
#   List products at or below their reorder level.
# - python -m flask ledger adjust 1 --direction in --pieces 50 --reason "Delivery"
#   Manual stock correction, recorded as an adjustment movement.
# - python -m flask ledger stale-pending --minutes 60
#   List pending sales that were never completed.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models.inventory import MOVEMENT_TYPES
from .services import sale_store_service, stock_ledger_service
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
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
    """Stock ledger inspection and maintenance."""


@ledger_group.command('stock')
@click.argument('product_id', type=int)
@with_appcontext
def show_stock(product_id):
    """Show current stock for a product."""
    try:
        stock = stock_ledger_service.get_stock(product_id)
    except LedgerError as e:
        raise click.ClickException(e.message)

    flag = "  LOW" if stock["is_low_stock"] else ""
    click.echo(
        f"{stock['product_id']:>5}  {stock['sku']:<20} {stock['stock_in_pieces']:>8} pcs  "
        f"(sheet={stock['pieces_per_sheet']} pcs, box={stock['sheets_per_box']} sheets, "
        f"reorder<={stock['reorder_level']}){flag}"
    )


@ledger_group.command('movements')
@click.option('--product-id', type=int, default=None, help='Filter by product')
@click.option('--sale-id', type=int, default=None, help='Filter by sale reference')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_movements(product_id, sale_id, limit):
    """List stock movements, newest first."""
    rows = stock_ledger_service.list_movements(
        product_id=product_id,
        reference_id=sale_id,
        limit=limit,
    )
    if not rows:
        click.echo("No movements found.")
        return

    for m in rows:
        ref = f"{m.reference_type}:{m.reference_id}" if m.reference_id is not None else m.reference_type
        reversal = f"  reverses #{m.reversal_of_id}" if m.reversal_of_id else ""
        click.echo(
            f"#{m.id:<6} {to_utc_z(m.created_at) or '':<21} product={m.product_id:<5} "
            f"{m.movement_type:<3} {m.quantity:>6}  {m.stock_before}->{m.stock_after}  "
            f"{ref}{reversal}  {m.reason or ''}"
        )


@ledger_group.command('reconcile')
@click.option('--product-id', type=int, default=None, help='Check a single product')
@with_appcontext
def reconcile(product_id):
    """Verify every movement chain against current stock."""
    try:
        if product_id is not None:
            reports = [stock_ledger_service.reconcile_product(product_id)]
        else:
            reports = stock_ledger_service.reconcile_all()
    except LedgerError as e:
        raise click.ClickException(e.message)

    failures = 0
    for report in reports:
        if report["is_consistent"]:
            status = "OK  "
        else:
            status = "FAIL"
            failures += 1
        click.echo(
            f"{status} product={report['product_id']:<5} opening={report['opening_stock']} "
            f"+{report['total_in']} -{report['total_out']} "
            f"ledger={report['ledger_stock']} current={report['current_stock']} "
            f"breaks={len(report['chain_breaks'])}"
        )

    click.echo(f"{len(reports)} product(s) checked, {failures} inconsistent.")
    if failures:
        raise SystemExit(1)


@ledger_group.command('low-stock')
@with_appcontext
def low_stock():
    """List products at or below their reorder level."""
    products = stock_ledger_service.list_low_stock_products()
    if not products:
        click.echo("No products at or below reorder level.")
        return
    for p in products:
        click.echo(f"{p.id:>5}  {p.sku:<20} {p.stock_in_pieces:>8} pcs  (reorder<={p.reorder_level})")


@ledger_group.command('adjust')
@click.argument('product_id', type=int)
@click.option('--direction', type=click.Choice(MOVEMENT_TYPES), required=True)
@click.option('--pieces', type=int, required=True)
@click.option('--reason', required=True, help='Why stock is being corrected')
@with_appcontext
def adjust(product_id, direction, pieces, reason):
    """Manually correct stock for a product."""
    try:
        movement = stock_ledger_service.adjust_stock(product_id, direction, pieces, reason)
    except LedgerError as e:
        raise click.ClickException(e.message)

    current_app.logger.info(
        "Manual stock adjustment via CLI: product %s %s %s (%s)",
        product_id, direction, pieces, reason,
    )
    click.echo(
        f"PASS Movement #{movement.id}: product {product_id} "
        f"{movement.stock_before} -> {movement.stock_after}"
    )


@ledger_group.command('stale-pending')
@click.option('--minutes', type=int, default=None, help='Age threshold (default: STALE_PENDING_MINUTES)')
@with_appcontext
def stale_pending(minutes):
    """List pending sales older than the threshold."""
    if minutes is None:
        minutes = current_app.config.get("STALE_PENDING_MINUTES", 60)
    sales = sale_store_service.find_stale_pending_sales(minutes)
    if not sales:
        click.echo(f"No pending sales older than {minutes} minutes.")
        return
    for s in sales:
        click.echo(
            f"sale={s.id:<6} created={to_utc_z(s.created_at)}  "
            f"total_cents={s.total_amount_cents}  items={len(s.items)}"
        )
    click.echo(f"{len(sales)} stale pending sale(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
