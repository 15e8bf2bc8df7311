"""
Shared pytest fixtures.

Every test gets its own app on a private in-memory SQLite database, so no
state leaks between tests.
"""
import pytest

from app import create_app
from errors import BackendError
from gateway import Result
from models import db
from records import User

TEST_CONFIG = {
    "TESTING": True,
    "DATABASE_URL": "sqlite://",
    "SECRET_KEY": "test-secret",
    "LOG_LEVEL": "WARNING",
    "JSON_LOGS": False,
    "CHECKOUT_URL": "https://checkout.example.com/pro",
}


@pytest.fixture
def app():
    """Configured app with tables created."""
    app = create_app(dict(TEST_CONFIG))
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def unconfigured_app():
    return create_app({"TESTING": True, "DATABASE_URL": None, "LOG_LEVEL": "WARNING"})


@pytest.fixture
def gateway(app):
    """SqlGateway inside a request context (auth needs the session)."""
    with app.test_request_context():
        yield app.extensions["gateway"]


@pytest.fixture
def user(gateway):
    row = gateway.auth.sign_up("owner@example.com", "secret1").unwrap()
    return User.from_row(row)


@pytest.fixture
def pro_user(gateway, user):
    gateway.set_subscription(user.id, True).unwrap()
    return User(id=user.id, email=user.email, is_pro=True)


@pytest.fixture
def client(app):
    """Unauthenticated Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def signed_in(client):
    """Test client with a freshly signed-up account."""
    r = client.post("/api/auth/signup", json={
        "email": "owner@example.com", "password": "secret1", "confirm_password": "secret1",
    })
    assert r.status_code == 201
    return client


# ── Helpers ───────────────────────────────────────────────────────────────────

class FlakyGateway:
    """Delegates to a real gateway but fails the Nth update call."""

    def __init__(self, inner, fail_on_update):
        self.inner = inner
        self.fail_on_update = fail_on_update
        self.updates = 0

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def update(self, table, values, filters):
        self.updates += 1
        if self.updates == self.fail_on_update:
            return Result.failure(BackendError(detail="connection reset"))
        return self.inner.update(table, values, filters)


@pytest.fixture
def flaky_gateway():
    return FlakyGateway
