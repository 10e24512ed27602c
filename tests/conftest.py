import pyotp
import pytest
from fastapi.testclient import TestClient

from backend.app.core.config import Settings
from backend.app.db.session import Database
from backend.app.main import create_app
from backend.app.models.user import User, UserRole

API = "/api/v1"
PASSWORD = "correct-horse-battery"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        SECRET_KEY="test-secret-key",
        ENVIRONMENT="test",
        LOG_LEVEL="WARNING",
        SMTP_HOST="",
        AUTH0_DOMAIN="tenant.example.auth0.com",
        AUTH0_CLIENT_ID="test-client-id",
        AUTH0_CLIENT_SECRET="test-client-secret",
        STELLAR_HORIZON_URL="https://horizon-testnet.example.org",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
async def database(settings):
    database = Database(settings)
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
async def db(database):
    async with database.session() as session:
        yield session


@pytest.fixture
async def user(db):
    user = User(
        name="Test User",
        email="user@example.com",
        hashed_password="not-a-real-hash",
        role=UserRole.USER.value,
        is_email_verified=True,
        is_wallet_verified=False,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
def register_user(client):
    """Register through the API; returns the JSON body."""

    def _register(email="alice@example.com", password=PASSWORD, name="Alice"):
        response = client.post(
            f"{API}/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def login(client):
    def _login(email="alice@example.com", password=PASSWORD):
        return client.post(f"{API}/auth/login", json={"email": email, "password": password})

    return _login


@pytest.fixture
def enable_two_factor(client, register_user, login):
    """Register alice, enroll TOTP through the API, return the secret."""

    def _enable(email="alice@example.com"):
        register_user(email=email)
        access_token = login(email=email).json()["accessToken"]
        headers = {"Authorization": f"Bearer {access_token}"}

        setup = client.post(f"{API}/2fa/setup", headers=headers)
        assert setup.status_code == 200, setup.text
        secret = setup.json()["secret"]

        enabled = client.post(
            f"{API}/2fa/enable",
            headers=headers,
            json={"token": pyotp.TOTP(secret).now()},
        )
        assert enabled.status_code == 200, enabled.text
        client.cookies.clear()
        return secret

    return _enable
