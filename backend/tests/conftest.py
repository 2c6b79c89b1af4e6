"""
Pytest fixtures for EIS portal backend tests.

Provides the app on in-memory SQLite, a per-test table wipe, a temporary
upload root, ops/viewer users with session headers, and a deal factory.
"""

from datetime import date

import pytest
from eis_portal import create_app
from eis_portal.extensions import db
from eis_portal.models import Accountant, Deal, Founder, Investor, User
from eis_portal.services import session_service, token_service
from eis_portal.services.auth_service import hash_password
from eis_portal.time_utils import utcnow


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    upload_root = tmp_path_factory.mktemp("uploads")
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_ROOT': str(upload_root),
        'APP_BASE_URL': 'http://portal.test',
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


@pytest.fixture(scope='session')
def password_hash():
    """One bcrypt hash shared by every test user."""
    return hash_password(TEST_PASSWORD)


def _make_user(db_session, password_hash, name, email, role):
    user = User(name=name, email=email, password_hash=password_hash, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def ops_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "Olivia Ops", "ops@example.com", "OPS")


@pytest.fixture(scope='function')
def viewer_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "Victor Viewer", "viewer@example.com", "VIEWER")


@pytest.fixture(scope='function')
def ops_headers(ops_user):
    _, token = session_service.create_session(ops_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def viewer_headers(viewer_user):
    _, token = session_service.create_session(viewer_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def make_deal(db_session):
    """
    Factory for deals in any status, bypassing the lifecycle.

    make_deal(status="SUBMITTED", accountant=True, founder_handles=False)
    """
    counter = {"n": 0}

    def _make(
        status="AWAITING_ONBOARDING",
        *,
        company_name=None,
        company_number=None,
        founder_name="Ada Founder",
        scheme_type="SEIS",
        amount_pence=150_000_00,
        created_at=None,
        accountant=False,
        founder_handles=True,
        issued_at=None,
    ):
        counter["n"] += 1
        n = counter["n"]
        deal = Deal(
            company_name=company_name or f"Company {n} Ltd",
            company_number=company_number or f"0000{n:04d}",
            scheme_type=scheme_type,
            investment_date=date(2025, 1, 10),
            investment_amount_pence=amount_pence,
            status=status,
            created_at=created_at or utcnow(),
        )
        db_session.add(deal)
        db_session.flush()

        token, expires_at = token_service.issue_token(now=issued_at)
        db_session.add(Founder(
            deal_id=deal.id,
            name=founder_name,
            email=f"founder{n}@example.com",
            magic_token=token,
            token_expires_at=expires_at,
            is_handling_submission=founder_handles,
        ))

        if accountant:
            acc_token, acc_expires = token_service.issue_token(now=issued_at)
            db_session.add(Accountant(
                deal_id=deal.id,
                firm_name="Smith & Co Accountants",
                contact_name="Jane Smith",
                email=f"jane{n}@smithco.com",
                magic_token=acc_token,
                token_expires_at=acc_expires,
            ))

        db_session.add(Investor(
            deal_id=deal.id,
            name="Alice Johnson",
            address_line1="123 Investment Street",
            city="London",
            postcode="SW1A 1AA",
            shares_issued=1000,
            amount_subscribed_pence=amount_pence,
            share_issue_date=date(2025, 1, 10),
        ))
        db_session.commit()
        return deal

    return _make


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
