"""
Pytest fixtures for zimmet backend tests.

Provides test database setup, users of both roles, auth headers and a test client.
"""

import pytest
from zimmet import create_app
from zimmet.extensions import db
from zimmet.models import Role, User
from zimmet.services import session_service
from zimmet.services.auth_service import hash_password
from zimmet.services.notification_service import hub


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'OVERDUE_THRESHOLD_MINUTES': 15,
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
        hub.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(full_name: str, email: str, role=Role.USER, department=None, password_hash="x") -> User:
    user = User(
        full_name=full_name,
        email=email,
        department=department,
        role=role,
        password_hash=password_hash,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def alice(db_session):
    return make_user("Alice Demir", "alice@example.com", department="Legal")


@pytest.fixture(scope='function')
def bob(db_session):
    return make_user("Bob Kaya", "bob@example.com", department="Finance")


@pytest.fixture(scope='function')
def carol(db_session):
    return make_user("Carol Aydin", "carol@example.com", department="Archive")


@pytest.fixture(scope='function')
def admin(db_session):
    """ADMIN with a real bcrypt password so login can be exercised."""
    return make_user(
        "Ada Admin",
        "admin@example.com",
        role=Role.ADMIN,
        department="IT",
        password_hash=hash_password(TEST_PASSWORD),
    )


@pytest.fixture(scope='function')
def headers_for(db_session):
    """Factory returning Authorization headers for a user (opens a real session)."""
    def _headers(user: User) -> dict:
        _, token = session_service.create_session(user.id)
        return auth_headers(token)
    return _headers


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
