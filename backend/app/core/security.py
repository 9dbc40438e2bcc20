# app/core/security.py
from __future__ import annotations

import datetime as dt
from typing import Callable, Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db.session import get_db
from app.models.user import ADMIN_ROLES, User, UserRole
from app.schemas.common import ApiError

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer = HTTPBearer(auto_error=False)
logger = structlog.get_logger("auth")

def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)

def _as_utc(d: dt.datetime) -> dt.datetime:
    if d.tzinfo is None:
        return d.replace(tzinfo=dt.timezone.utc)
    return d.astimezone(dt.timezone.utc)

def _ts(d: dt.datetime) -> int:
    return int(_as_utc(d).timestamp())

def hash_password(plain: str) -> str:
    return pwd_ctx.hash(plain)

def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    return pwd_ctx.verify(plain, hashed)

def _encode(sub: str, *, role: str | None = None, minutes: int | None = None, days: int | None = None, typ: str = "access") -> str:
    settings = get_settings()
    now = _utc_now()
    if minutes is None and days is None:
        minutes = 15
    exp_dt = now + (dt.timedelta(minutes=minutes) if minutes is not None else dt.timedelta(days=days))
    payload = {
        "sub": sub,
        "typ": typ,
        "iat": _ts(now),
        "exp": _ts(exp_dt),
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def create_access(sub: str, role: str | None = None) -> str:
    return _encode(sub, role=role, minutes=get_settings().JWT_ACCESS_MIN, typ="access")

def create_refresh(sub: str) -> str:
    return _encode(sub, days=get_settings().JWT_REFRESH_DAYS, typ="refresh")

def decode_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError as e:
        raise ValueError(str(e))


def _token_from_request(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    # Cookie first, then the Authorization header.
    token = request.cookies.get(get_settings().AUTH_COOKIE_NAME)
    if token:
        return token
    if creds is not None and creds.scheme.lower() == "bearer":
        return creds.credentials
    return None


def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """FastAPI dependency that validates an access token and returns an active, verified user."""
    token = _token_from_request(request, creds)
    if not token:
        raise ApiError(401, "Authentication required", "auth_required")
    try:
        payload = decode_token(token)
        if payload.get("typ") != "access":
            raise ValueError("Not an access token")
        email = payload.get("sub")
        if not email:
            raise ValueError("Missing subject")
    except ValueError as exc:
        logger.info("auth.token_rejected", reason=str(exc))
        raise ApiError(401, "Invalid or expired token", "invalid_token")

    user = db.query(User).filter(User.email == email, User.is_active == True).first()  # noqa: E712
    if not user or not user.email_verified:
        raise ApiError(401, "Authentication required", "auth_required")
    return user


def require_roles(*roles: UserRole) -> Callable[..., User]:
    """Dependency factory: allow the given roles; SUPERADMIN always passes."""

    def _check(user: User = Depends(get_current_user)) -> User:
        if user.role == UserRole.SUPERADMIN or user.role in roles:
            return user
        raise ApiError(403, "You are not allowed to perform this action", "permission_denied")

    return _check


def require_admin_with_two_factor(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    """Admin role plus a two-factor verification inside the configured window."""
    if user.role not in ADMIN_ROLES:
        raise ApiError(403, "You are not allowed to perform this action", "permission_denied")

    if not user.two_factor_enabled:
        raise ApiError(
            403,
            "Enable two-factor authentication first; it is required for admin actions.",
            "2fa_setup_required",
            requireSetup=True,
        )

    if user.two_factor_verified:
        if user.last_two_factor_verification is None:
            # Verified flag without a timestamp: stamp it now and let the request through.
            user.last_two_factor_verification = _utc_now()
            db.add(user)
            db.commit()
            return user
        window = dt.timedelta(minutes=get_settings().ADMIN_2FA_WINDOW_MIN)
        if _utc_now() - _as_utc(user.last_two_factor_verification) <= window:
            return user

    raise ApiError(
        403,
        "Two-factor verification is required to perform admin actions.",
        "2fa_verification_required",
        requireVerification=True,
    )
