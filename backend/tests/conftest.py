"""
Pytest fixtures for production day backend tests.

Provides the test application on in-memory SQLite, a fresh database per
test, user and product factories, and test client helpers.
"""

from datetime import date, timedelta

import pytest
from prodday import create_app
from prodday.extensions import db
from prodday.models import ProductionDaySnapshot, ProductionEntry
from prodday.models.auth import ROLE_ADMIN, ROLE_USER
from prodday.services import catalog_service
from prodday.services.auth_service import create_user
from prodday.time_utils import utcnow


PASSWORD = "Password123!"

PAST_DAY = date(2024, 1, 10)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'ENTRY_GROUPING_DEFAULT': True,
        'FINALIZE_REQUIRE_ALL_CHECKED': False,
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
    db.session.remove()


@pytest.fixture(scope='function')
def operator(db_session):
    """Floor operator who scans products."""
    return create_user("operator", PASSWORD, name="Olivia Operator")


@pytest.fixture(scope='function')
def checker(db_session):
    """Second person who confers entries."""
    return create_user("checker", PASSWORD, name="Carlos Checker", role=ROLE_USER)


@pytest.fixture(scope='function')
def admin(db_session):
    """Administrator allowed to reopen days."""
    return create_user("admin", PASSWORD, name="Ada Admin", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def product_a(db_session):
    return catalog_service.add_product("WID-A", "Widget A", photo_url="https://img.local/a.png")


@pytest.fixture(scope='function')
def product_b(db_session):
    return catalog_service.add_product("WID-B", "Widget B", barcode="7890000000012")


@pytest.fixture
def future_day():
    return date.today() + timedelta(days=30)


def make_snapshot(session_date, payload, user_id=None, is_open=False, total_items=None, total_quantity=None):
    """Insert a snapshot row directly, bypassing finalize (for legacy payload shapes)."""
    snapshot = ProductionDaySnapshot(
        session_date=session_date,
        total_items=total_items if total_items is not None else 0,
        total_quantity=total_quantity if total_quantity is not None else 0,
        payload=payload,
        finalized_at=utcnow(),
        finalized_by=user_id,
        is_open=is_open,
    )
    db.session.add(snapshot)
    db.session.commit()
    return snapshot


def ledger_rows(session_date):
    return (
        db.session.query(ProductionEntry)
        .filter_by(session_date=session_date)
        .order_by(ProductionEntry.product_code, ProductionEntry.line_no)
        .all()
    )


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
