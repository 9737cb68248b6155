# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo data: one supplier, admin/staff/supplier users, a handful of products.
#
# Inventory inspection:
# - python -m flask inventory low-stock
#   List active products at or below their low-stock threshold.
#
# Reports:
# - python -m flask reports summary --start 2026-03-01 --end 2026-03-31
#   Print count/revenue/tax/average for active sales in the window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import SaleEngineError
from .models import Product, Supplier, User
from .services import inventory_service, reporting_service


DEMO_PRODUCTS = [
    # sku, name, category, price_cents, stock
    ("DEMO-001", "Ballpoint Pen", "Stationery", 2500, 120),
    ("DEMO-002", "A4 Notebook", "Stationery", 8900, 40),
    ("DEMO-003", "USB-C Cable", "Electronics", 24900, 15),
    ("DEMO-004", "Desk Lamp", "Electronics", 129900, 6),
    ("DEMO-005", "Coffee Mug", "Kitchen", 19900, 0),
]


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo supplier, users and products (idempotent)."""
    db.create_all()

    supplier = db.session.query(Supplier).filter_by(company_name="Demo Supplies Inc").first()
    if supplier is None:
        supplier = Supplier(company_name="Demo Supplies Inc", contact_email="orders@demo-supplies.local")
        db.session.add(supplier)
        db.session.flush()

    def ensure_user(username: str, role: str) -> User:
        user = db.session.query(User).filter_by(username=username).first()
        if user is None:
            user = User(username=username, email=f"{username}@retail.local", role=role)
            db.session.add(user)
            db.session.flush()
        return user

    admin = ensure_user("admin", "admin")
    staff = ensure_user("cashier", "staff")
    vendor = ensure_user("vendor", "supplier")
    if supplier.user_id is None:
        supplier.user_id = vendor.id

    created = 0
    for sku, name, category, price_cents, stock in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            continue
        db.session.add(Product(
            sku=sku,
            name=name,
            category=category,
            price_cents=price_cents,
            stock_quantity=stock,
            supplier_id=supplier.id,
        ))
        created += 1

    db.session.commit()
    click.echo(f"PASS Seeded {created} product(s). "
               f"Users: admin (id={admin.id}), cashier (id={staff.id}), vendor (id={vendor.id}).")


@click.group('inventory')
def inventory_group():
    """Inventory inspection."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """List active products at or below their low-stock threshold."""
    products = inventory_service.low_stock_alerts()
    if not products:
        click.echo("No low-stock products.")
        return

    click.echo("\n" + "=" * 72)
    click.echo(f"{'ID':<6} {'SKU':<12} {'Name':<30} {'Stock':>8} {'Threshold':>10}")
    click.echo("-" * 72)
    for p in products:
        click.echo(f"{p.id:<6} {(p.sku or '-'):<12} {p.name[:30]:<30} {p.stock_quantity:>8} {p.low_stock_threshold:>10}")
    click.echo("=" * 72 + "\n")


@click.group('reports')
def reports_group():
    """Read-only reports."""


@reports_group.command('summary')
@click.option('--start', required=True, help='First day (YYYY-MM-DD), inclusive')
@click.option('--end', required=True, help='Last day (YYYY-MM-DD), inclusive')
@with_appcontext
def summary_cli(start, end):
    """Sales summary for active (non-void) sales."""
    try:
        summary = reporting_service.sales_summary(start, end)
    except SaleEngineError as exc:
        raise click.ClickException(exc.message)

    click.echo(f"Sales:   {summary['count']}")
    click.echo(f"Revenue: {_money(summary['revenue_cents'])}")
    click.echo(f"VAT:     {_money(summary['tax_cents'])}")
    click.echo(f"Average: {_money(summary['average_cents'])}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(reports_group)
