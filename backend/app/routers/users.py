from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security import require_roles
from app.db.session import get_db
from app.models.user import User, UserRole
from app.schemas.common import ApiError, ok

router = APIRouter(prefix="/api/users", tags=["users"])


def _parse_role(raw: str) -> UserRole:
    try:
        return UserRole(raw.upper())
    except ValueError:
        raise ApiError(400, "Invalid role", "validation_error")


@router.get("/by-role/{role}")
def users_by_role(
    role: str,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.ADMIN, UserRole.MODERATOR)),
):
    """Active users holding `role` (case-insensitive), for staff directories."""
    wanted = _parse_role(role)
    rows = db.execute(
        select(User).where(User.role == wanted, User.is_active == True).order_by(User.id.asc())  # noqa: E712
    ).scalars().all()
    return ok(users=[u.public_dict() for u in rows])
