# Overview: Flask CLI command groups for ledger inspection and demo bootstrap.

# backend/posledger/cli.py
# Commands Legend:
# - flask ledger reconcile [--merchant-id 1]
#   Compare every product's stock_qty with the sum of its stock log; exits 1 on mismatch.
# - flask ledger history --product-id 7 --merchant-id 1 [--limit 20]
#   Print the newest stock log entries of one product.
# - flask demo seed
#   Idempotently create a demo merchant, outlets, cashier and products with opening stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Merchant, Outlet, User, Product
from .services import inventory_service
from .services.errors import PosError


DEMO_PRODUCTS = [
    # slug, name, price (minor units), opening stock
    ("kopi-hitam", "Kopi Hitam", 15000, 100),
    ("kopi-susu", "Kopi Susu", 18000, 80),
    ("teh-manis", "Teh Manis", 8000, 120),
    ("roti-bakar", "Roti Bakar", 20000, 40),
]


@click.group('ledger')
def ledger_group():
    """Stock ledger inspection."""


@ledger_group.command('reconcile')
@click.option('--merchant-id', type=int, default=None, help='Limit to one merchant')
@with_appcontext
def reconcile_command(merchant_id):
    """Check SUM(stock_logs.change_qty) == products.stock_qty for every product."""
    mismatches = inventory_service.find_ledger_mismatches(merchant_id)
    if not mismatches:
        click.echo("PASS Ledger balanced for all products")
        return

    click.echo(f"FAIL {len(mismatches)} product(s) out of balance:")
    for row in mismatches:
        click.echo(
            f"  product {row['product_id']} ({row['slug']}, merchant {row['merchant_id']}): "
            f"stock_qty={row['stock_qty']} ledger={row['ledger_qty']} diff={row['difference']:+d}"
        )
    raise SystemExit(1)


@ledger_group.command('history')
@click.option('--product-id', type=int, required=True)
@click.option('--merchant-id', type=int, required=True)
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def history_command(product_id, merchant_id, limit):
    """Newest stock log entries for one product."""
    try:
        rows, meta = inventory_service.list_stock_logs(
            merchant_id=merchant_id,
            product_id=product_id,
            limit=limit,
        )
    except PosError as e:
        raise click.ClickException(e.message)

    click.echo(f"{meta['total']} entries (showing {len(rows)})")
    for log in rows:
        ref = f" ref={log.ref_id}" if log.ref_id is not None else ""
        click.echo(f"  #{log.id} {log.created_at:%Y-%m-%d %H:%M:%S} {log.change_qty:+d} {log.reason}{ref}")


@click.group('demo')
def demo_group():
    """Demo data."""


@demo_group.command('seed')
@with_appcontext
def seed_command():
    """Create the demo merchant, outlets, cashier and products (idempotent)."""
    merchant = db.session.query(Merchant).filter_by(slug="demo-store").first()
    if merchant is None:
        merchant = Merchant(name="Demo Store", slug="demo-store")
        db.session.add(merchant)
        db.session.commit()
        click.echo(f"PASS Merchant created: {merchant.name} (ID: {merchant.id})")
    else:
        click.echo(f"PASS Using existing merchant: {merchant.name} (ID: {merchant.id})")

    for slug, name in (("main-branch", "Main Branch"), ("second-branch", "Second Branch")):
        outlet = db.session.query(Outlet).filter_by(merchant_id=merchant.id, slug=slug).first()
        if outlet is None:
            outlet = Outlet(merchant_id=merchant.id, slug=slug, name=name)
            db.session.add(outlet)
            db.session.commit()
            click.echo(f"PASS Outlet created: {name} (ID: {outlet.id})")

    cashier = db.session.query(User).filter_by(username="cashier").first()
    if cashier is None:
        cashier = User(merchant_id=merchant.id, name="Demo Cashier", username="cashier")
        db.session.add(cashier)
        db.session.commit()
        click.echo(f"PASS Cashier created (ID: {cashier.id})")

    for slug, name, price_cents, opening_qty in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(merchant_id=merchant.id, slug=slug).first():
            continue
        product = inventory_service.register_product(
            merchant_id=merchant.id,
            slug=slug,
            name=name,
            price_cents=price_cents,
            actor_id=cashier.id,
            opening_qty=opening_qty,
        )
        click.echo(f"PASS Product created: {name} (ID: {product.id}, stock {opening_qty})")

    click.echo("DONE Demo data ready")


def register_commands(app):
    app.cli.add_command(ledger_group)
    app.cli.add_command(demo_group)
