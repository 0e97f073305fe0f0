"""
Pytest fixtures for stock ledger tests.

Provides an in-memory application, a per-test clean database, catalog
factories and an authenticated actor.
"""

import pytest
from stockledger import create_app
from stockledger.config import TestConfig
from stockledger.extensions import db
from stockledger.models import InventoryItem, InventoryVariation, StoreLocation, Staff
from stockledger.services import ledger_service
from stockledger.services.actor_service import Actor


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin(db_session):
    """Active admin staff member (also the system actor)."""
    staff = Staff(name="Admin", email="admin@example.com", role="admin")
    db_session.add(staff)
    db_session.commit()
    return staff


@pytest.fixture(scope='function')
def actor(admin):
    return Actor(id=admin.id, role=admin.role)


@pytest.fixture(scope='function')
def make_location(db_session):
    def _make(name="Location"):
        location = StoreLocation(name=name)
        db_session.add(location)
        db_session.commit()
        return location
    return _make


@pytest.fixture(scope='function')
def loc_a(make_location):
    return make_location("Store A")


@pytest.fixture(scope='function')
def loc_b(make_location):
    return make_location("Store B")


@pytest.fixture(scope='function')
def make_variation(db_session):
    """Create an ordinary (non-bundle) item with one variation."""
    counter = {"n": 0}

    def _make(name="Widget", sku=None):
        counter["n"] += 1
        item = InventoryItem(name=name)
        db_session.add(item)
        db_session.flush()
        variation = InventoryVariation(
            item_id=item.id,
            sku=sku or f"SKU-{counter['n']:04d}",
            name=name,
            selling_price_cents=1000,
        )
        db_session.add(variation)
        db_session.commit()
        return variation
    return _make


@pytest.fixture(scope='function')
def variation(make_variation):
    return make_variation("Widget")


@pytest.fixture(scope='function')
def seed_stock(actor):
    """Put stock on the ledger through a receiving adjustment."""
    def _seed(variation, location, quantity):
        result = ledger_service.apply_adjustment(variation.id, location.id, quantity, "Initial stock", actor)
        assert result.ok, result.message
        return result.value
    return _seed


@pytest.fixture(scope='function')
def headers(actor):
    """Actor identity headers as forwarded by the auth layer."""
    return {'X-Actor-Id': str(actor.id), 'X-Actor-Role': actor.role}
