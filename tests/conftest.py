"""
Shared test fixtures.

Sets up an isolated test database so tests never touch the real
database. Tables are created before and dropped after every test.
"""

import os

# Settings are read at import time; point them at test values first.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from opsdesk.main import app
from opsdesk.models.base import Base, get_db
from opsdesk.models.user import User
from opsdesk.schemas.auth import Claims
from opsdesk.security import create_access_token
from opsdesk.seed import seed_defaults
from opsdesk.services.auth_service import claims_for
from opsdesk.services.user_service import UserService


# SQLite keeps the suite free of database infrastructure.
TEST_DATABASE_URL = "sqlite:///./test.db"

ADMIN_EMAIL = "admin@opsdesk.test"
ADMIN_PASSWORD = "admin-password"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session):
    """
    Provide a test client with the test database.

    get_db is overridden so the app shares the test's session.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db_session) -> User:
    """The seeded permission catalog, the admin role and an admin user."""
    seed_defaults(db_session, admin_email=ADMIN_EMAIL, admin_password=ADMIN_PASSWORD)
    db_session.commit()
    return UserService(db_session).get_by_email(ADMIN_EMAIL)


@pytest.fixture
def admin_claims(admin) -> Claims:
    return claims_for(admin)


def auth_headers(user: User) -> dict[str, str]:
    """Bearer header for a user, as issued by /auth/login."""
    token = create_access_token(
        {"sub": str(user.id), "email": user.email, "name": user.name}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return auth_headers(admin)


@pytest.fixture
def headers_for():
    """Build bearer headers for any user created inside a test."""
    return auth_headers
