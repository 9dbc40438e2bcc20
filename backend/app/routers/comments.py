from fastapi import APIRouter

from app.schemas.common import deprecated_notice

router = APIRouter(prefix="/api/comments", tags=["comments"])


@router.get("", deprecated=True)
def list_comments_gone():
    # Retired endpoint: answered with the plain 410 notice, outside the envelope contract.
    return deprecated_notice(
        "This endpoint has been removed. Article comments are served from "
        "/api/articles/{id}/comments and moderation lives under /api/admin/comments."
    )
