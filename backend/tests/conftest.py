"""
Pytest fixtures for FreshCount backend tests.

Provides the app on in-memory SQLite, a per-test table wipe, admin/staff
users with auth headers, and a small catalog to move stock against.
"""

import pytest

from freshcount import create_app
from freshcount.config import TestConfig
from freshcount.extensions import db
from freshcount.models import Category, Product, User
from freshcount.services.auth_service import hash_password

DEFAULT_PASSWORD = "password123"


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
def cli_runner(app):
    return app.test_cli_runner()


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


def make_user(session, email: str, role: str = "staff", password: str = DEFAULT_PASSWORD, name: str | None = None) -> User:
    user = User(
        email=email,
        name=name or email.split("@")[0].title(),
        role=role,
        password_hash=hash_password(password),
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, "admin@freshcount.test", role="admin", name="Admin User")


@pytest.fixture(scope='function')
def staff_user(db_session):
    return make_user(db_session, "staff@freshcount.test", role="staff", name="Staff User")


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email, DEFAULT_PASSWORD))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email, DEFAULT_PASSWORD))


@pytest.fixture(scope='function')
def veg(db_session, admin_user):
    """The "Veg" category."""
    category = Category(name="Veg", description="Fresh vegetables", created_by_user_id=admin_user.id)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def tomato(db_session, veg):
    """Tomato, 40 kg opening stock, no movements yet."""
    product = Product(
        name="Tomato",
        category_id=veg.id,
        unit_type="kg",
        opening_stock=40,
        current_stock=40,
    )
    db_session.add(product)
    db_session.commit()
    return product


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def record(client, headers, product_id: int, movement_type: str, quantity, notes: str = ""):
    """POST /api/stock and return the response."""
    return client.post('/api/stock', json={
        'product_id': product_id,
        'type': movement_type,
        'quantity': quantity,
        'notes': notes,
    }, headers=headers)


def current_stock(client, headers, product_id: int) -> float:
    resp = client.get(f'/api/products/{product_id}', headers=headers)
    assert resp.status_code == 200
    return resp.json['current_stock']
