# backend/app/config.py
from functools import lru_cache
from typing import List
import secrets

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # environment: "dev" for running the app locally, "test" for pytest
    ENV: str = "dev"

    DATABASE_URL: str | None = None
    TEST_DATABASE_URL: str | None = None
    DB_APP_ROLE: str | None = None
    DB_REQUIRE_SSL: bool = True

    # --- Auth / JWT ---
    JWT_SECRET: str | None = Field(None, description="JWT signing secret. Must be set outside dev/test.")
    JWT_ALG: str = "HS256"
    JWT_ACCESS_MIN: int = 30
    JWT_REFRESH_DAYS: int = 7
    AUTH_COOKIE_NAME: str = "token"
    # Admin actions need a 2FA verification no older than this.
    ADMIN_2FA_WINDOW_MIN: int = 180

    # --- Response envelopes ---
    APP_ENCRYPTION_KEY: str | None = Field(
        None,
        description="Envelope key: 64 hex chars, urlsafe base64 of 32 bytes, or a passphrase.",
    )

    # --- Security controls ---
    FORCE_HTTPS: bool = False
    TRUSTED_HOSTS: List[str] = Field(
        default_factory=lambda: [
            "localhost",
            "127.0.0.1",
            "testserver",
            "test",
        ]
    )
    HSTS_MAX_AGE: int = 31536000  # 1 year
    CONTENT_SECURITY_POLICY: str = (
        "default-src 'self'; "
        "img-src 'self' data:; "
        "style-src 'self' 'unsafe-inline'; "
        "script-src 'self'; "
        "font-src 'self' data:; "
        "connect-src 'self'; "
        "frame-ancestors 'none'"
    )

    @model_validator(mode="after")
    def _check_secrets(self):
        # In dev/test, auto-generate an ephemeral secret if none provided to avoid committing secrets.
        if self.ENV in ("dev", "test"):
            if not self.JWT_SECRET:
                self.JWT_SECRET = secrets.token_urlsafe(32)
            return self
        # In non-dev/test environments, require explicit secrets from env.
        if not self.JWT_SECRET:
            raise ValueError("JWT_SECRET must be set via environment for non-dev/test environments.")
        if not self.APP_ENCRYPTION_KEY:
            raise ValueError("APP_ENCRYPTION_KEY must be set via environment for non-dev/test environments.")
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
