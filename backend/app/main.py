# app/main.py
from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

# Import router objects explicitly to avoid module name collisions
from app.routers.health import router as health_router
from app.routers.auth import router as auth_router
from app.routers.board import router as board_router, admin_router as admin_board_router
from app.routers.supporters import router as supporters_router, admin_router as admin_supporters_router
from app.routers.comments import router as comments_router
from app.routers.users import router as users_router
from app.db.session import init_db
from app.observability.logging import configure_logging
from app.observability.middleware import register_exception_handlers, register_request_middleware
from app.observability.metrics import router as observability_router
from app.security.crypto import reset_crypto_state
from app.security.middleware import SecurityHeadersMiddleware
from app.config import get_settings

configure_logging()

DEV_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def create_app() -> FastAPI:
    settings = get_settings()
    # Key is process configuration: pick up the current settings for this app instance.
    reset_crypto_state()
    app = FastAPI(title="Community Platform API", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=DEV_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400
    )

    if settings.TRUSTED_HOSTS:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.TRUSTED_HOSTS)

    if settings.FORCE_HTTPS:
        app.add_middleware(HTTPSRedirectMiddleware)

    app.add_middleware(
        SecurityHeadersMiddleware,
        csp=settings.CONTENT_SECURITY_POLICY,
        hsts_max_age=settings.HSTS_MAX_AGE,
        enable_hsts=settings.FORCE_HTTPS,
    )

    register_request_middleware(app)
    register_exception_handlers(app)

    @app.on_event("startup")
    def _ensure_tables() -> None:
        try:
            init_db()
        except Exception as ex:
            structlog.get_logger("startup").exception("startup.create_tables_failed", error=str(ex))

    # Public routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(observability_router)
    app.include_router(board_router)
    app.include_router(supporters_router)
    app.include_router(comments_router)
    app.include_router(users_router)

    # Admin routers carry the admin + 2FA dependency on the router itself
    app.include_router(admin_board_router)
    app.include_router(admin_supporters_router)

    return app


app = create_app()
