import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.database import get_session
from app.main import app

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# CRITICAL: Test Database Setup with StaticPool
# ============================================================================
# 1. Use sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables dropped after every test so ids and rows never leak between tests
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    # Import all models to ensure they're registered BEFORE create_all
    import app.models  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    CRITICAL: Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration. This ensures the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def game(client: TestClient):
    """A modern board game; with no legal status row it is not playable in-app"""
    resp = client.post(
        "/api/games",
        json={
            "name": "Catan",
            "description": "Trade and build",
            "min_players": 3,
            "max_players": 4,
            "duration_min": 60,
            "duration_max": 120,
            "category": "Strategy",
            "complexity": 2.3,
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def playable_game(client: TestClient):
    resp = client.post(
        "/api/games",
        json={"name": "Chess", "min_players": 2, "max_players": 2, "category": "Abstract"},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
