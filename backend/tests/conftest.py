"""
Pytest fixtures for ordercrm backend tests.

Provides the test database, staff users, an agent with a product, and the
test client.
"""

from datetime import timedelta

import pytest

from ordercrm import create_app
from ordercrm.extensions import db
from ordercrm.models import Agent, Product, User
from ordercrm.models.auth import ROLE_ADMIN, ROLE_INVENTORY_MANAGER, ROLE_SALES_REP
from ordercrm.services.permission_service import Actor
from ordercrm.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_ATTEMPTS': 2,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
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
    user = User(name="Ada Admin", email="admin@test.local", role=ROLE_ADMIN, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def inventory_manager(db_session):
    user = User(name="Ivan Inventory", email="inventory@test.local", role=ROLE_INVENTORY_MANAGER, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def sales_reps(db_session):
    """Three active reps created one minute apart: A, B, C in rotation order."""
    base = utcnow() - timedelta(hours=1)
    reps = []
    for offset, name in enumerate(["Rep A", "Rep B", "Rep C"]):
        rep = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@test.local",
            role=ROLE_SALES_REP,
            is_active=True,
            created_at=base + timedelta(minutes=offset),
        )
        db_session.add(rep)
        reps.append(rep)
    db_session.commit()
    return reps


@pytest.fixture(scope='function')
def admin_actor(admin):
    return Actor(user_id=admin.id, role=admin.role)


@pytest.fixture(scope='function')
def inventory_actor(inventory_manager):
    return Actor(user_id=inventory_manager.id, role=inventory_manager.role)


@pytest.fixture(scope='function')
def rep_actor(sales_reps):
    return Actor(user_id=sales_reps[0].id, role=ROLE_SALES_REP)


@pytest.fixture(scope='function')
def product(db_session):
    """Warehouse product: 100 units at 1500 cents price, 1000 cents cost."""
    product = Product(
        sku="PROD-001",
        name="Blender",
        price_cents=1500,
        cost_cents=1000,
        current_stock=100,
        is_active=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def agent(db_session):
    agent = Agent(name="Kofi Mensah", phone="0244000000", location="Accra", address="12 Ring Road")
    db_session.add(agent)
    db_session.commit()
    return agent


def auth_headers(user) -> dict:
    """Helper to create the caller header the upstream auth layer forwards."""
    return {'X-User-Id': str(user.id)}
