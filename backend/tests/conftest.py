"""
Pytest fixtures for the cash ledger tests.

Provides an in-memory application, a per-test clean database and a few
ready-made registers.
"""

import pytest

from cashbox import create_app
from cashbox.extensions import db
from cashbox.services import register_service

TENANT = "acme"
BRANCH = "centro"
CASHIER = "cashier-1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CASH_RETRY_BACKOFF': 0,
    })

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
def register(db_session):
    """OPEN register with 100.00 of starting cash."""
    return register_service.open_register(TENANT, BRANCH, CASHIER, 10000, notes="Morning shift")


def actor_headers(actor: str = CASHIER) -> dict:
    """Helper to create the actor identity header."""
    return {'X-Actor-Id': actor}
