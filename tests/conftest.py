"""Pytest configuration and fixtures for the test suite."""

import os

import pytest

# Set test environment BEFORE any app imports
TEST_JWT_SECRET = "test-secret-key-for-the-litigation-suite-0123456789"
os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"

from fastapi.testclient import TestClient  # noqa: E402

from apps.api.main import create_app  # noqa: E402
from apps.api.seed import seed_users  # noqa: E402
from apps.api.settings import AppSettings  # noqa: E402
from auth.auth_manager import AuthConfig  # noqa: E402
from auth.evaluator import AuthorizationEvaluator  # noqa: E402
from auth.permissions import Role  # noqa: E402
from auth.policy import RolePolicy  # noqa: E402
from legal.repository import UserRepository  # noqa: E402
from storage.database import DatabaseConfig  # noqa: E402

PASSWORD = "Secret123!"

ROLE_EMAILS = {
    Role.SUPER_ADMIN: "superadmin@example.com",
    Role.ADMIN: "admin@example.com",
    Role.LAWYER: "lawyer@example.com",
    Role.STAFF: "staff@example.com",
}


@pytest.fixture(scope="session")
def policy():
    return RolePolicy.from_yaml()


@pytest.fixture(scope="session")
def evaluator(policy):
    return AuthorizationEvaluator(policy)


@pytest.fixture
def auth_config():
    return AuthConfig(jwt_secret=TEST_JWT_SECRET, jwt_expiry=3600, bcrypt_rounds=4)


@pytest.fixture
def app(auth_config, policy):
    """Fresh app over its own in-memory database, seeded with one user per role."""
    application = create_app(
        auth_config=auth_config,
        db_config=DatabaseConfig("sqlite://"),
        policy=policy,
        settings=AppSettings(environment="test", default_page_size=20, max_page_size=100),
    )
    seed_users(application.state.db_manager, application.state.auth_manager, PASSWORD)
    yield application
    application.state.db_manager.dispose()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def db_session(app):
    session = app.state.db_manager.session()
    yield session
    session.close()


@pytest.fixture
def user_ids(app):
    """Role -> seeded user id"""
    with app.state.db_manager.session() as session:
        return {role: UserRepository.find_by_email(session, email).id for role, email in ROLE_EMAILS.items()}


def login(client, email, password=PASSWORD):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


@pytest.fixture
def token_for(client):
    """token_for(Role.LAWYER) -> bearer token for the seeded account"""
    def _token_for(role):
        return login(client, ROLE_EMAILS[role])
    return _token_for


@pytest.fixture
def auth_headers(token_for):
    """auth_headers(Role.STAFF) -> {"Authorization": "Bearer ..."}"""
    def _auth_headers(role):
        return {"Authorization": f"Bearer {token_for(role)}"}
    return _auth_headers
