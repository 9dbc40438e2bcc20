from __future__ import annotations

import os
import threading
from typing import Generator

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings

logger = structlog.get_logger("db")

_lock = threading.Lock()
_engine: Engine | None = None
_sessionmaker: sessionmaker[Session] | None = None


def _select_database_url() -> str:
    settings = get_settings()
    env_name = (settings.ENV or "dev").lower()

    if env_name == "test" or os.getenv("PYTEST_CURRENT_TEST"):
        test_url = settings.TEST_DATABASE_URL or os.getenv("TEST_DATABASE_URL")
        if test_url:
            return test_url

    runtime_url = settings.DATABASE_URL or os.getenv("DATABASE_URL")
    if runtime_url:
        return runtime_url

    return "sqlite:///./community.db"


def _enforce_ssl_requirements(raw_url: str) -> str:
    settings = get_settings()
    url_obj = make_url(raw_url)
    backend = url_obj.get_backend_name()

    if settings.DB_REQUIRE_SSL and backend.startswith("postgresql"):
        if "sslmode" not in url_obj.query:
            new_query = dict(url_obj.query)
            new_query["sslmode"] = "require"
            url_obj = url_obj.set(query=new_query)

    expected_role = settings.DB_APP_ROLE
    if expected_role and url_obj.username and url_obj.username != expected_role:
        raise RuntimeError(
            f"DATABASE_URL user '{url_obj.username}' does not match required role '{expected_role}'"
        )

    return url_obj.render_as_string(hide_password=False)


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:") or url.endswith(":memory:?cache=shared"):
            return create_engine(
                url,
                connect_args=connect_args,
                poolclass=StaticPool,
                future=True,
            )
        return create_engine(url, connect_args=connect_args, future=True)

    return create_engine(url, pool_pre_ping=True, future=True)


def get_engine() -> Engine:
    """Process-wide engine, created on first use and reused afterwards."""
    global _engine, _sessionmaker
    if _engine is None:
        with _lock:
            if _engine is None:
                engine = _build_engine(_enforce_ssl_requirements(_select_database_url()))
                logger.info("db.connected", dialect=engine.dialect.name)
                if engine.dialect.name == "sqlite":
                    # SQLite has no migrations; create tables eagerly.
                    from app.db.base import Base  # pylint: disable=import-outside-toplevel

                    Base.metadata.create_all(bind=engine)
                _sessionmaker = sessionmaker(
                    bind=engine,
                    autocommit=False,
                    autoflush=False,
                    future=True,
                )
                _engine = engine
    return _engine


def get_sessionmaker() -> sessionmaker[Session]:
    get_engine()
    assert _sessionmaker is not None
    return _sessionmaker


def get_db() -> Generator[Session, None, None]:
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    # Lazy import to avoid circular dependency at module import time
    from app.db.base import Base  # pylint: disable=import-outside-toplevel

    Base.metadata.create_all(bind=get_engine())


def dispose_engine() -> None:
    """Drop the cached engine so the next call rebuilds it (tests, config reloads)."""
    global _engine, _sessionmaker
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _sessionmaker = None
