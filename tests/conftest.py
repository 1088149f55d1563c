"""Pytest configuration and fixtures."""

import os

# Settings are read at import time
os.environ["JWT_SECRET_KEY"] = "test-signing-key-not-for-production-use-0123456789"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SEED_CATALOG_ON_STARTUP"] = "false"

import pytest
from fastapi.testclient import TestClient

from cms_auth.database import Base, SessionLocal, engine, get_db
from cms_auth.main import app
from cms_auth.models.enums import UserType
from cms_auth.models.permission import PermissionCode
from cms_auth.models.user import User
from cms_auth.schemas.auth import RegisterRequest
from cms_auth.services.auth_service import AuthService
from cms_auth.services.catalog_service import CatalogService
from cms_auth.services.notification_service import NotificationService, get_notification_service
from cms_auth.services.password_service import PasswordService, build_context
from cms_auth.services.token_service import TokenService
from cms_auth.services.user_service import UserService
from cms_auth.utils.clock import FrozenClock, utcnow

DEFAULT_PASSWORD = "Secret123!"


class FakeNotificationService(NotificationService):
    """Collects notifications in memory."""

    def __init__(self):
        self.sent = []

    def send_welcome(self, email, name):
        self.sent.append(("welcome", email, name))

    def send_password_reset(self, email, new_password):
        self.sent.append(("password_reset", email, new_password))

    def send_account_status_changed(self, email, name, is_active):
        self.sent.append(("account_status", email, is_active))

    def send_role_assigned(self, email, name, role_name):
        self.sent.append(("role_assigned", email, role_name))

    def of_kind(self, kind):
        return [n for n in self.sent if n[0] == kind]


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    """Frozen at the real current time so issued JWTs still validate."""
    return FrozenClock(utcnow())


@pytest.fixture
def passwords():
    return PasswordService(build_context(rounds=4))


@pytest.fixture
def notifications():
    return FakeNotificationService()


@pytest.fixture
def catalog(db, clock):
    service = CatalogService(db, clock=clock)
    service.seed()
    return service


@pytest.fixture
def tokens(db, clock):
    return TokenService(db, clock=clock)


@pytest.fixture
def auth_service(db, passwords, tokens, notifications, clock, catalog):
    return AuthService(db, passwords=passwords, tokens=tokens, notifications=notifications, clock=clock)


@pytest.fixture
def user_service(db, notifications, clock, catalog):
    return UserService(db, notifications=notifications, clock=clock)


@pytest.fixture
def register_user(auth_service):
    """Factory registering a user through the orchestrator."""

    def _register(email="alice@x.com", password=DEFAULT_PASSWORD, user_type=UserType.INDIVIDUAL, **profile):
        request = RegisterRequest(
            email=email,
            password=password,
            first_name=profile.get("first_name", "Alice"),
            last_name=profile.get("last_name", "Smith"),
            phone_number=profile.get("phone_number"),
            user_type=user_type,
        )
        return auth_service.register(request)

    return _register


@pytest.fixture(scope="function")
def client(db, notifications):
    """Create a test client with overridden database and notification dependencies."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    CatalogService(db).seed()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notifications
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def api_login(client):
    """Factory registering a user over HTTP and returning its auth payload."""

    def _login(email="alice@x.com", password=DEFAULT_PASSWORD, user_type="Individual"):
        client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "firstName": "Test", "lastName": "User", "userType": user_type},
        )
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()["data"]

    return _login


@pytest.fixture
def admin_headers(client, db, api_login):
    """Bearer headers of a user whose group holds every permission."""
    api_login("admin@x.com", user_type="Corporate")

    catalog = CatalogService(db)
    admin_group = catalog.grant_all(catalog.ensure_group("Admin"))
    admin = db.query(User).filter(User.email == "admin@x.com").one()
    admin.assign_group(admin_group)
    db.commit()

    response = client.post("/api/auth/login", json={"email": "admin@x.com", "password": DEFAULT_PASSWORD})
    data = response.json()["data"]
    assert PermissionCode.GET_USERS.name in [p["code"] for p in data["user"]["permissions"]]
    return {"Authorization": f"Bearer {data['accessToken']}"}
