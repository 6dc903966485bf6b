"""
Pytest fixtures for the parts POS backend tests.

Provides an in-memory database, per-test table wipe, users, catalog rows and
an authenticated test client.
"""

import pytest

from partspos import create_app
from partspos.extensions import db
from partspos.models import Category, Product
from partspos.services.auth_service import create_user


PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_LOG_ROUNDS': 4,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh tables for each test."""
    with app.app_context():
        db.session.rollback()
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture
def admin_user(db_session):
    return create_user(
        username="admin",
        email="admin@parts.test",
        password=PASSWORD,
        first_name="Alice",
        last_name="Admin",
        role="admin",
    )


@pytest.fixture
def staff_user(db_session):
    return create_user(
        username="staff",
        email="staff@parts.test",
        password=PASSWORD,
        first_name="Sam",
        last_name="Staff",
        role="staff",
    )


@pytest.fixture
def category(db_session):
    c = Category(name="Brake System", description="Pads, rotors, calipers")
    db_session.add(c)
    db_session.commit()
    return c


def make_product(barcode: str, name: str, price_cents: int, stock: int, category_id=None, **extra) -> Product:
    p = Product(
        barcode=barcode,
        name=name,
        price_cents=price_cents,
        stock=stock,
        category_id=category_id,
        **extra,
    )
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def product_a(db_session, category):
    return make_product("1234567890123", "Brake Pads - Front Set", 2599, 10, category.id,
                        manufacturer="Brembo", part_number="BP-FRONT-001")


@pytest.fixture
def product_b(db_session, category):
    return make_product("2345678901234", "Brake Rotor", 1550, 10, category.id,
                        manufacturer="ACDelco", part_number="BR-002")


@pytest.fixture
def product_c(db_session):
    return make_product("3456789012345", "Spark Plug", 899, 3)


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.username))
