"""Shared helpers for tests: in-memory database, pinned clock, API test base class."""

import unittest
from datetime import datetime, timedelta

from fastapi.testclient import TestClient

from bugtracker.api.deps import get_clock
from bugtracker.core.database import build_engine, get_db, make_session_factory
from bugtracker.core.security import PasswordHasher, TokenService, utcnow
from bugtracker.main import app
from bugtracker.models import Base, User

TEST_PASSWORD = "Passw0rd!"
hasher = PasswordHasher(rounds=4)


class FakeClock:
    """Callable clock pinned to a moment; tests move it explicitly."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_database():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    return engine, make_session_factory(engine)


def make_token_service(clock: FakeClock) -> TokenService:
    return TokenService(
        access_secret="test-access-secret",
        refresh_secret="test-refresh-secret",
        access_lifetime=timedelta(days=7),
        refresh_lifetime=timedelta(days=30),
        clock=clock,
    )


def add_user(
    db,
    email: str = "a@x.com",
    password: str = TEST_PASSWORD,
    role: str = "user",
    name: str = "Alice Tester",
    **fields: object,
) -> User:
    user = User(name=name, email=email, role=role, **fields)
    user.set_password(password, hasher)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


class DatabaseTestCase(unittest.TestCase):
    """Fresh in-memory database per test."""

    def setUp(self) -> None:
        self.engine, self.Session = make_database()
        self.db = self.Session()
        self.clock = FakeClock()

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def reload(self, user_id: int) -> User:
        """Read the row through a separate session so no cached state leaks in."""
        with self.Session() as s:
            user = s.get(User, user_id)
            s.expunge(user)
            return user


class ApiTestCase(DatabaseTestCase):
    """DatabaseTestCase plus a TestClient wired to the same database and clock."""

    def setUp(self) -> None:
        super().setUp()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_clock] = lambda: self.clock
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.client.close()
        super().tearDown()

    def register(self, email: str = "a@x.com", password: str = TEST_PASSWORD, **extra: object):
        body = {"name": "Alice Tester", "email": email, "password": password, **extra}
        return self.client.post("/api/auth/register", json=body)

    def login(self, email: str = "a@x.com", password: str = TEST_PASSWORD):
        return self.client.post("/api/auth/login", json={"email": email, "password": password})

    def login_tokens(self, email: str = "a@x.com", password: str = TEST_PASSWORD) -> dict:
        resp = self.login(email, password)
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()["data"]

    @staticmethod
    def bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}
