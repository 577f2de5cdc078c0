# Overview: Flask CLI command group for bootstrap and stock inspection.

# backend/stockpost/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "stockpost:create_app" (PowerShell: $env:FLASK_APP="stockpost:create_app").
# - Use: python -m flask inventory <command> [options]
#
# - python -m flask inventory init-db
#   Create all tables (dev/test; use `flask db upgrade` for managed databases).
# - python -m flask inventory seed-demo
#   Idempotent demo data: one company, a buyer, a supplier, a product with two
#   variants, a service and two stock lots.
# - python -m flask inventory stock-report --variant-id <id>
#   Print a variant's lots in FIFO order and its total available stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import CatalogVariant, Company, CompanyProduct, CompanyService, User
from .services import stock_service, variant_service


@click.group('inventory')
def inventory_group():
    """Inventory and sale posting commands."""
    pass


@inventory_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@inventory_group.command('seed-demo')
@click.option('--company', 'company_name', default='Demo Salon', help='Company name')
@with_appcontext
def seed_demo(company_name):
    """Create demo company, users, catalog, variants and stock (idempotent)."""
    company = db.session.query(Company).filter_by(name=company_name).first()
    if company:
        click.echo(f"WARN  Company '{company_name}' already exists (ID: {company.id}), skipping...")
        return

    company = Company(name=company_name)
    buyer = User(first_name="Dana", last_name="Client", email="client@stockpost.local", phone="555-0100")
    supplier = User(first_name="Sam", last_name="Supplier", email="supplier@stockpost.local")
    db.session.add_all([company, buyer, supplier])
    db.session.flush()

    product = CompanyProduct(company_id=company.id, name="Shampoo", description="Salon shampoo", unit="bottle")
    small = CatalogVariant(name="250ml", sku="SHP-250")
    large = CatalogVariant(name="500ml", sku="SHP-500")
    service = CompanyService(company_id=company.id, name="Haircut", description="Wash and cut", price=25)
    db.session.add_all([product, small, large, service])
    db.session.commit()
    click.echo(f"PASS Created company: {company.name} (ID: {company.id})")

    variants = variant_service.create_variants_bulk(
        product.id,
        [
            {"system_product_variant_id": small.id, "type": "product", "is_default": True},
            {"system_product_variant_id": large.id, "type": "product"},
        ],
    )
    for variant in variants:
        click.echo(f"PASS Created variant: {variant.name} (ID: {variant.id}, default={variant.is_default})")

    lot = stock_service.intake_stock(
        variant_id=variants[0].id,
        quantity=20,
        cost_price="4.50",
        sell_price="9.00",
        purchase_date="2026-01-05",
        supplier_id=supplier.id,
        batch_number="B-001",
    )
    click.echo(f"PASS Received stock lot {lot.id}: {lot.quantity} x {variants[0].name}")

    click.echo("\n" + "=" * 60)
    click.echo("DONE Demo data ready")
    click.echo("=" * 60)
    click.echo(f"Headers: X-Company-Id: {company.id}  X-User-Id: {buyer.id}")


@inventory_group.command('stock-report')
@click.option('--variant-id', required=True, help='Variant ID')
@with_appcontext
def stock_report(variant_id):
    """Show a variant's lots in FIFO order."""
    variant = variant_service.get_variant(variant_id)
    if variant is None:
        click.echo(f"FAIL Variant not found: {variant_id}")
        raise SystemExit(1)

    lots = stock_service.list_stock_lots(variant_id)
    click.echo(f"Variant {variant.id} ({variant.name or '-'}) - {len(lots)} lot(s), FIFO order:")
    click.echo(f"{'ID':<12} {'Purchased':<12} {'Qty':>6} {'Cost':>10} {'Active':<6}")
    click.echo("-" * 50)
    for lot in lots:
        purchased = lot.purchase_date.isoformat() if lot.purchase_date else "-"
        click.echo(f"{lot.id:<12} {purchased:<12} {lot.quantity:>6} {str(lot.cost_price):>10} {'yes' if lot.is_active else 'no':<6}")
    click.echo("-" * 50)

    status = variant_service.get_stock_status(variant_id)
    flags = []
    if status["low_stock"]:
        flags.append("LOW")
    if status["over_stock"]:
        flags.append("OVER")
    click.echo(f"Total available: {status['total_available']} (min {status['min_stock']}, max {status['max_stock']}) {' '.join(flags)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(inventory_group)
