"""
Pytest fixtures for BakeLink backend tests.

Provides an in-memory database per test, two independent owners
(tenant isolation), catalog rows, and authenticated test clients.
"""

import pytest
from bakelink import create_app
from bakelink.extensions import db
from bakelink.models import User, ProductCategory, Product
from bakelink.services.auth_service import hash_password
from bakelink.services.session_service import create_session

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'ENFORCE_STATUS_TRANSITIONS': False,
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
    return db.session


def _make_user(db_session, name: str, email: str, role: str = "user") -> User:
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_a(db_session):
    """Owner A (the baker under test)."""
    return _make_user(db_session, "Baker A", "a@bakery.test")


@pytest.fixture(scope='function')
def user_b(db_session):
    """Owner B (a second, unrelated baker)."""
    return _make_user(db_session, "Baker B", "b@bakery.test")


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "Admin", "admin@bakery.test", role="admin")


@pytest.fixture(scope='function')
def category_a(db_session, user_a):
    category = ProductCategory(user_id=user_a.id, name="Bread")
    db_session.add(category)
    db_session.commit()
    return category


def _make_product(db_session, owner, category, name, price_cents, is_active=True) -> Product:
    product = Product(
        user_id=owner.id,
        category_id=category.id,
        name=name,
        price_cents=price_cents,
        is_active=is_active,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def baguette(db_session, user_a, category_a):
    return _make_product(db_session, user_a, category_a, "Baguette", 350)


@pytest.fixture(scope='function')
def croissant(db_session, user_a, category_a):
    return _make_product(db_session, user_a, category_a, "Croissant", 220)


@pytest.fixture(scope='function')
def retired_loaf(db_session, user_a, category_a):
    return _make_product(db_session, user_a, category_a, "Retired Loaf", 500, is_active=False)


@pytest.fixture(scope='function')
def product_b(db_session, user_b):
    category = ProductCategory(user_id=user_b.id, name="Cakes")
    db_session.add(category)
    db_session.commit()
    return _make_product(db_session, user_b, category, "Cheesecake", 900)


def auth_headers(token: str, **extra) -> dict:
    """Helper to create Authorization headers."""
    headers = {'Authorization': f'Bearer {token}'}
    headers.update(extra)
    return headers


@pytest.fixture(scope='function')
def token_a(user_a):
    _, token = create_session(user_id=user_a.id)
    return token


@pytest.fixture(scope='function')
def token_b(user_b):
    _, token = create_session(user_id=user_b.id)
    return token


@pytest.fixture(scope='function')
def headers_a(token_a):
    return auth_headers(token_a)


@pytest.fixture(scope='function')
def headers_b(token_b):
    return auth_headers(token_b)


def schedule_payload(**overrides) -> dict:
    """A valid schedule body for 2026-02-17 with a morning order window."""
    payload = {
        "schedule_date": "2026-02-17",
        "order_start_at": "2026-02-10T08:00:00Z",
        "order_end_at": "2026-02-16T20:00:00Z",
    }
    payload.update(overrides)
    return payload


def order_payload(schedule_id: int, items: list, **overrides) -> dict:
    payload = {
        "schedule_id": schedule_id,
        "customer_name": "Mei",
        "customer_phone": "0912345678",
        "pickup_time": "2026-02-17T09:30:00Z",
        "payment_method": "cash",
        "items": items,
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope='function')
def open_schedule(client, headers_a, baguette, croissant):
    """
    OPEN schedule on 2026-02-17: baguette capped at 5, croissant unlimited.

    Returns the response JSON (with items).
    """
    response = client.post('/schedules', headers=headers_a, json=schedule_payload(
        status="OPEN",
        items=[
            {"product_id": baguette.id, "sales_limit": 5},
            {"product_id": croissant.id},
        ],
    ))
    assert response.status_code == 201, response.json
    return response.json
