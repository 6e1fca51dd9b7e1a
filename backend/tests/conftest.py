"""
Pytest fixtures for atelier backend tests.

Provides an in-memory database, users for every role, bearer tokens and a
seeded bespoke order.
"""

import pytest

from atelier import create_app
from atelier.extensions import db
from atelier.models import User
from atelier.models.auth import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_STAFF, ROLE_SUPER_ADMIN
from atelier.services import bespoke_service, session_service
from atelier.services.auth_service import hash_password


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MAIL_SERVER': None,
        'APP_URL': 'https://atelier.test',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow by design; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


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


def _make_user(db_session, password_hash, name, email, role, **extra):
    user = User(name=name, email=email, role=role, password_hash=password_hash, **extra)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def customer(db_session, password_hash):
    return _make_user(db_session, password_hash, "Amara Obi", "amara@example.com", ROLE_CUSTOMER, phone="08030000001")


@pytest.fixture(scope='function')
def staff(db_session, password_hash):
    return _make_user(db_session, password_hash, "Tunde Tailor", "tunde@atelier.local", ROLE_STAFF)


@pytest.fixture(scope='function')
def other_staff(db_session, password_hash):
    return _make_user(db_session, password_hash, "Bisi Beads", "bisi@atelier.local", ROLE_STAFF)


@pytest.fixture(scope='function')
def admin(db_session, password_hash):
    return _make_user(db_session, password_hash, "Ada Admin", "ada@atelier.local", ROLE_ADMIN)


@pytest.fixture(scope='function')
def super_admin(db_session, password_hash):
    return _make_user(db_session, password_hash, "Root Owner", "owner@atelier.local", ROLE_SUPER_ADMIN)


def auth_headers(user) -> dict:
    """Issue a session token for `user` and return Authorization headers."""
    _, token = session_service.create_session(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture(scope='function')
def staff_headers(staff):
    return auth_headers(staff)


@pytest.fixture(scope='function')
def other_staff_headers(other_staff):
    return auth_headers(other_staff)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture(scope='function')
def super_admin_headers(super_admin):
    return auth_headers(super_admin)


@pytest.fixture(scope='function')
def order(db_session, staff, customer):
    """Bespoke order linked to a customer account, in INQUIRY."""
    return bespoke_service.create_order({
        "customer_name": customer.name,
        "customer_phone": "08030000001",
        "customer_email": "amara.orders@example.com",
        "user_id": customer.id,
        "design_description": "Three-piece agbada, gold embroidery",
        "estimated_price_cents": 45_000_00,
    }, staff)


@pytest.fixture(scope='function')
def walk_in_order(db_session, staff):
    """Bespoke order with no linked account and no email."""
    return bespoke_service.create_order({
        "customer_name": "Walk In",
        "customer_phone": "08039999999",
    }, staff)
