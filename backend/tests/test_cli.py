"""
CLI command tests.
"""

from sqlalchemy import update

from stockledger.models import InventoryItem, InventoryStockLevel, InventoryVariation


def test_seed_demo_then_verify(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["stock", "seed-demo"])
    assert result.exit_code == 0, result.output
    assert "Hair Care Kit" in result.output
    assert db_session.query(InventoryItem).filter_by(is_bundle=True).count() == 1

    result = runner.invoke(args=["stock", "verify"])
    assert result.exit_code == 0
    assert "PASS" in result.output

    # Seeding twice is a no-op
    result = runner.invoke(args=["stock", "seed-demo"])
    assert "SKIP" in result.output


def test_levels(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["stock", "seed-demo"])
    shampoo = db_session.query(InventoryVariation).filter_by(sku="SHAMPOO-250").one()

    result = runner.invoke(args=["stock", "levels", "--variation-id", str(shampoo.id)])

    assert result.exit_code == 0
    assert "total=35" in result.output


def test_verify_fails_on_drift(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["stock", "seed-demo"])
    db_session.execute(update(InventoryStockLevel).values(stock=InventoryStockLevel.stock + 1))
    db_session.commit()

    result = runner.invoke(args=["stock", "verify"])

    assert result.exit_code == 1
