# Overview: Flask CLI commands for bootstrap, inspection and ledger verification.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Stock ledger:
# - python -m flask stock init-db
#   Create all tables (idempotent; use flask db upgrade for migrated deployments).
# - python -m flask stock seed-demo
#   Create two locations, an admin, two component variations with stock and one bundle.
# - python -m flask stock levels --variation-id 1
#   Show live stock of a variation per location.
# - python -m flask stock verify
#   Fold the adjustment log against the ledger. Exits 1 when any drift is found.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import InventoryItem, InventoryVariation, StoreLocation, Staff
from .services import bundle_service, ledger_service
from .services.actor_service import Actor


@click.group('stock')
def stock_group():
    """Stock ledger bootstrap and inspection commands."""


@stock_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created")


@stock_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Seed a small demo catalog.

    Creates:
    - Locations: Main Store, Warehouse
    - Admin staff member (used as the system actor)
    - Items: Shampoo, Conditioner with stock at both locations
    - Bundle: Hair Care Kit = 1 Shampoo + 2 Conditioner
    """
    if db.session.query(StoreLocation).first() is not None:
        click.echo("SKIP Locations already exist; demo data not seeded")
        return

    main = StoreLocation(name="Main Store")
    warehouse = StoreLocation(name="Warehouse")
    admin = Staff(name="System Admin", email="admin@stockledger.local", role="admin")
    db.session.add_all([main, warehouse, admin])
    db.session.flush()

    variations = {}
    for name, sku, price in (("Shampoo", "SHAMPOO-250", 899), ("Conditioner", "COND-250", 999)):
        item = InventoryItem(name=name)
        db.session.add(item)
        db.session.flush()
        variation = InventoryVariation(item_id=item.id, sku=sku, name=f"{name} 250ml", selling_price_cents=price)
        db.session.add(variation)
        variations[name] = variation
    db.session.commit()
    click.echo(f"PASS Created locations {main.id}, {warehouse.id} and admin {admin.id}")

    actor = Actor(id=admin.id, role=admin.role)
    for variation, location, qty in (
        (variations["Shampoo"], main, 10),
        (variations["Shampoo"], warehouse, 25),
        (variations["Conditioner"], main, 12),
        (variations["Conditioner"], warehouse, 40),
    ):
        ledger_service.apply_adjustment(variation.id, location.id, qty, "Initial stock", actor).unwrap()

    bundle = bundle_service.create_bundle("Hair Care Kit", actor).unwrap()
    bundle_service.create_bundle_variation(
        bundle.id,
        "KIT-HAIR",
        "Hair Care Kit",
        2499,
        actor,
        components=[
            {"component_variation_id": variations["Shampoo"].id, "quantity": 1, "display_order": 0},
            {"component_variation_id": variations["Conditioner"].id, "quantity": 2, "display_order": 1},
        ],
    ).unwrap()

    availability = bundle_service.compute_available_stock(bundle.id)
    click.echo(f"PASS Created bundle {bundle.name} (ID: {bundle.id}); availability {availability}")


@stock_group.command('levels')
@click.option('--variation-id', type=int, required=True, help='Variation to inspect')
@with_appcontext
def show_levels(variation_id):
    """Show live stock of a variation at each location."""
    levels = ledger_service.get_stock_levels(variation_id)
    if not levels:
        click.echo(f"No stock rows for variation {variation_id}")
        return
    for level in levels:
        click.echo(f"location={level.location_id:<6} stock={level.stock:<8} version={level.version_id}")
    click.echo(f"total={sum(level.stock for level in levels)}")


@stock_group.command('verify')
@with_appcontext
def verify():
    """Check that every ledger row equals the fold of its adjustments."""
    problems = ledger_service.verify_ledger()
    if not problems:
        click.echo("PASS Ledger consistent with adjustment log")
        return

    for problem in problems:
        click.echo(f"FAIL {problem}", err=True)
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(stock_group)
