from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.security import require_admin_with_two_factor
from app.db.session import get_db
from app.models.supporter import Supporter
from app.schemas.common import ApiError, ok
from app.schemas.content import ReorderIn, SupporterIn, SupporterOut, SupporterUpdate
from app.services import content

router = APIRouter(prefix="/api/supporters", tags=["supporters"])
admin_router = APIRouter(
    prefix="/api/admin/supporters",
    tags=["admin"],
    dependencies=[Depends(require_admin_with_two_factor)],
)


@router.get("")
def list_supporters(db: Session = Depends(get_db)):
    return ok(supporters=content.list_supporters(db))


@admin_router.get("")
def admin_list_supporters(db: Session = Depends(get_db)):
    return ok(supporters=content.list_supporters(db))


@admin_router.post("")
def create_supporter(body: SupporterIn, db: Session = Depends(get_db)):
    row = content.create_row(db, Supporter, body.model_dump())
    return ok(status_code=201, message="Supporter created", supporter=SupporterOut.model_validate(row))


@admin_router.post("/reorder")
def reorder_supporters(body: ReorderIn, db: Session = Depends(get_db)):
    if not body.items:
        raise ApiError(400, "No ordering data supplied", "validation_error")
    content.reorder_rows(db, Supporter, body.items)
    return ok(message="Order updated")


@admin_router.put("/{supporter_id}")
def update_supporter(supporter_id: int, body: SupporterUpdate, db: Session = Depends(get_db)):
    changes = content.non_empty_changes(body)
    if not changes:
        raise ApiError(400, "No fields to update", "validation_error")
    row = content.update_row(db, Supporter, supporter_id, changes)
    if row is None:
        raise ApiError(404, "Supporter not found", "not_found")
    return ok(message="Supporter updated", supporter=SupporterOut.model_validate(row))


@admin_router.delete("/{supporter_id}")
def delete_supporter(supporter_id: int, db: Session = Depends(get_db)):
    if not content.delete_row(db, Supporter, supporter_id):
        raise ApiError(404, "Supporter not found", "not_found")
    return ok(message="Supporter deleted")
