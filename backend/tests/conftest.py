import datetime as dt
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure backend/ is importable as the top-level "app" package even when pytest runs from repo root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

TEST_KEY = "5f" * 32

# Ensure the application runs in test/sqlite mode *before* importing any app modules
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("TEST_DATABASE_URL", None)
os.environ.setdefault("JWT_SECRET", "test_secret")
os.environ.setdefault("JWT_ALG", "HS256")
os.environ.setdefault("JWT_ACCESS_MIN", "30")
os.environ.setdefault("JWT_REFRESH_DAYS", "7")
os.environ["APP_ENCRYPTION_KEY"] = TEST_KEY

from app import config  # noqa: E402
from app.core.security import create_access, hash_password  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import get_engine, get_sessionmaker  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.security import crypto  # noqa: E402

DEMO_PASSWORD = "demo123"


@pytest.fixture(autouse=True)
def _fresh_config():
    """Tests that monkeypatch env clear these caches; leave them clean for the next test."""
    yield
    config.get_settings.cache_clear()
    crypto.reset_crypto_state()


@pytest.fixture(autouse=True)
def reset_db():
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="session")
def demo_password_hash():
    # bcrypt is slow; hash once per session
    return hash_password(DEMO_PASSWORD)


@pytest.fixture
def make_user(db, demo_password_hash):
    def _make(
        email: str = "demo@example.com",
        role: UserRole = UserRole.USER,
        *,
        email_verified: bool = True,
        is_active: bool = True,
        two_factor_enabled: bool = False,
        two_factor_verified: bool = False,
        last_two_factor_verification: dt.datetime | None = None,
    ) -> User:
        user = User(
            email=email,
            password_hash=demo_password_hash,
            name="Demo",
            lastname="User",
            role=role,
            email_verified=email_verified,
            is_active=is_active,
            two_factor_enabled=two_factor_enabled,
            two_factor_verified=two_factor_verified,
            last_two_factor_verification=last_two_factor_verification,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin_headers(make_user):
    """Bearer headers for an admin whose 2FA was verified a minute ago."""
    user = make_user(
        "admin@example.com",
        UserRole.ADMIN,
        two_factor_enabled=True,
        two_factor_verified=True,
        last_two_factor_verification=dt.datetime.now(dt.timezone.utc) - dt.timedelta(minutes=1),
    )
    token = create_access(user.email, role=user.role.value)
    return {"Authorization": f"Bearer {token}"}
