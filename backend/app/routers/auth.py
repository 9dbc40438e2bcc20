# app/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db.session import get_db
from app.models.user import User
from app.events import ProfileUpdatedEvent, profile_updates
from app.schemas.auth import LoginIn, ProfileUpdate, RefreshIn, TokenPair
from app.schemas.common import ApiError, ok
from app.core.security import (
    verify_password,
    create_access,
    create_refresh,
    decode_token,
    get_current_user,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _token_response(user: User, status_code: int = 200):
    settings = get_settings()
    pair = TokenPair(
        access_token=create_access(user.email, role=user.role.value),
        refresh_token=create_refresh(user.email),
    )
    response = ok(pair.model_dump(), status_code=status_code, user=user.public_dict())
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        pair.access_token,
        max_age=settings.JWT_ACCESS_MIN * 60,
        httponly=True,
        secure=settings.FORCE_HTTPS,
        samesite="lax",
    )
    return response


@router.post("/login")
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email).first()
    if not user or not user.is_active or not verify_password(body.password, user.password_hash):
        raise ApiError(401, "Invalid credentials", "invalid_credentials")
    if not user.email_verified:
        raise ApiError(403, "Email address has not been verified", "email_not_verified")
    return _token_response(user)


@router.post("/refresh")
def refresh(body: RefreshIn, db: Session = Depends(get_db)):
    # NOTE: Public endpoint. Validates refresh token from body.
    try:
        payload = decode_token(body.refresh_token)
        if payload.get("typ") != "refresh":
            raise ValueError("Not a refresh token")
        email = payload.get("sub")
        if not email:
            raise ValueError("Missing subject")
    except ValueError:
        raise ApiError(401, "Invalid or expired token", "invalid_token")

    user = db.query(User).filter(User.email == email, User.is_active == True).first()  # noqa: E712
    if not user:
        raise ApiError(401, "Invalid or expired token", "invalid_token")
    if not user.email_verified:
        raise ApiError(403, "Email address has not been verified", "email_not_verified")
    return _token_response(user)


@router.post("/logout")
def logout():
    response = ok(message="Logged out")
    response.delete_cookie(get_settings().AUTH_COOKIE_NAME)
    return response


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return ok(user=user.public_dict())


@router.put("/me")
def update_me(body: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ApiError(400, "No fields to update", "validation_error")
    for key, value in changes.items():
        setattr(user, key, value)
    db.add(user)
    db.commit()
    db.refresh(user)

    profile_updates.publish(
        ProfileUpdatedEvent(user_id=user.id, name=user.name, lastname=user.lastname, avatar=user.avatar)
    )
    return ok(message="Profile updated", user=user.public_dict())
