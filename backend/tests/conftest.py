"""
Pytest fixtures for retail billing backend tests.

Provides an in-process app on in-memory SQLite, a clean database per test,
users with auth headers, and catalog fixtures.
"""

import pytest

from retail_billing import create_app
from retail_billing.extensions import db
from retail_billing.models import Customer, Product, User
from retail_billing.services.auth_service import hash_password

TEST_PASSWORD = "Password123!"

_password_hash_cache = {}


def _password_hash() -> str:
    # bcrypt at cost 12 is slow; hash once per run
    if "hash" not in _password_hash_cache:
        _password_hash_cache["hash"] = hash_password(TEST_PASSWORD)
    return _password_hash_cache["hash"]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()


@pytest.fixture(scope='function')
def cashier(db_session):
    user = User(
        username="cashier",
        email="cashier@retail.test",
        password_hash=_password_hash(),
        first_name="Casey",
        last_name="Cashier",
        role="cashier",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def auth_headers(client, cashier):
    """Authorization header for the cashier user."""
    token = get_auth_token(client, "cashier", TEST_PASSWORD)
    assert token, "login failed in fixture"
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for products; money in cents, tax in basis points."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Product {counter['n']}",
            "unit_price_cents": 10000,
            "stock_quantity": 10,
            "min_stock_level": 2,
            "tax_rate_bps": 1000,
        }
        fields.update(overrides)
        product = Product(**fields)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product P: stock 10, price 100.00, tax 10%."""
    return make_product(sku="P-001", name="Product P")


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(first_name="Jane", last_name="Doe", email="jane@example.test")
    db_session.add(c)
    db_session.commit()
    return c


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def stock_of(product_id: int) -> int:
    """Current committed stock for a product."""
    db.session.expire_all()
    return db.session.get(Product, product_id).stock_quantity
