from fastapi import APIRouter
from app.schemas.common import ok

router = APIRouter(prefix="/api/health", tags=["health"])

@router.get("")
def healthcheck():
    return ok(status="ok")
