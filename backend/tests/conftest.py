import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from main import app
from database import Base, get_db
from models import User
from auth import get_password_hash, create_access_token
from utils.notifications import GroupEventHub, get_hub

# Setup in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def hub():
    """A private event hub so broadcasts never leak between tests."""
    return GroupEventHub()

@pytest.fixture(scope="function")
def client(db_session, hub):
    """Create a FastAPI TestClient with overridden database and hub dependencies."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_hub] = lambda: hub
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_hub, None)

@pytest.fixture
def make_user(db_session):
    """Factory that stores a user and returns it."""
    def _make_user(email, full_name=None, password="password123"):
        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            full_name=full_name,
            is_active=True
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user

@pytest.fixture
def test_user(make_user):
    """Create a test user and return the user object."""
    return make_user("test@example.com", full_name="Test User")

@pytest.fixture
def headers_for():
    """Build bearer headers for any user."""
    def _headers_for(user):
        access_token = create_access_token(data={"sub": user.email})
        return {"Authorization": f"Bearer {access_token}"}
    return _headers_for

@pytest.fixture
def auth_headers(test_user, headers_for):
    """Return authorization headers for the test user."""
    return headers_for(test_user)

@pytest.fixture
def group_id(client, auth_headers):
    """A group created by the test user."""
    response = client.post("/groups", headers=auth_headers, json={"name": "Trip", "description": "Weekend away"})
    return response.json()["id"]
