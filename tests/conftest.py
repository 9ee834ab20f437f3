"""
Shared fixtures for the oracle test suite.

Every test gets a fresh app on an in-memory SQLite database. Background
threads stay off; tests drive the pegger and broadcaster directly.
"""
import pytest
from sqlalchemy.pool import StaticPool

from zera_oracle.factory import create_app
from zera_oracle.systems.auth_system import issue_token

TEST_SECRET = "test-jwt-secret"
TEST_PASSWORD = "correct horse battery staple"

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
ZERA_MINT = "ZERA4uy6Fq2cXy8bQn3nYxJ8JmPzP2Xq8kUo5ydA9Nn"


def make_app(**overrides):
    config = {
        "TESTING": True,
        "JWT_SECRET": TEST_SECRET,
        "ADMIN_UI_PASSWORD": TEST_PASSWORD,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SQLALCHEMY_ENGINE_OPTIONS": {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        },
        "START_BACKGROUND_SYSTEMS": False,
        "USDC_DEVNET_MINT": None,
        "ZERA_DEVNET_MINT": None,
        "PEG_SOURCES": "",
        "WRITE_RATE_LIMIT_PER_MINUTE": 1000,
        "SSE_HEARTBEAT_SECS": 0.05,
        "LOG_LEVEL": "WARNING",
    }
    config.update(overrides)
    return create_app(config)


@pytest.fixture
def app():
    """Create a test Flask application."""
    test_app = make_app()
    yield test_app
    from zera_oracle.extensions import db
    with test_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()


@pytest.fixture
def admin_token(app):
    with app.app_context():
        return issue_token("alice")


@pytest.fixture
def auth_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def app_ctx(app):
    """Pushes an app context for tests that call services directly."""
    with app.app_context():
        yield app
