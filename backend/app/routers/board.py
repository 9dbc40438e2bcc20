from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.security import require_admin_with_two_factor
from app.db.session import get_db
from app.models.board import BoardMember
from app.schemas.common import ApiError, ok
from app.schemas.content import BoardMemberIn, BoardMemberOut, BoardMemberUpdate, ReorderIn
from app.services import content

router = APIRouter(prefix="/api/board", tags=["board"])
admin_router = APIRouter(
    prefix="/api/admin/board",
    tags=["admin"],
    dependencies=[Depends(require_admin_with_two_factor)],
)


@router.get("")
def list_board(db: Session = Depends(get_db)):
    return ok(boardMembers=content.list_board_members(db))


@admin_router.get("")
def admin_list_board(db: Session = Depends(get_db)):
    return ok(boardMembers=content.list_board_members(db))


@admin_router.post("")
def create_board_member(body: BoardMemberIn, db: Session = Depends(get_db)):
    row = content.create_row(db, BoardMember, body.model_dump())
    return ok(
        status_code=201,
        message="Board member created",
        boardMember=BoardMemberOut.model_validate(row),
    )


# declared before /{member_id} so "reorder" is never parsed as an id
@admin_router.post("/reorder")
def reorder_board(body: ReorderIn, db: Session = Depends(get_db)):
    if not body.items:
        raise ApiError(400, "No ordering data supplied", "validation_error")
    content.reorder_rows(db, BoardMember, body.items)
    return ok(message="Order updated")


@admin_router.put("/{member_id}")
def update_board_member(member_id: int, body: BoardMemberUpdate, db: Session = Depends(get_db)):
    changes = content.non_empty_changes(body)
    if not changes:
        raise ApiError(400, "No fields to update", "validation_error")
    row = content.update_row(db, BoardMember, member_id, changes)
    if row is None:
        raise ApiError(404, "Board member not found", "not_found")
    return ok(message="Board member updated", boardMember=BoardMemberOut.model_validate(row))


@admin_router.delete("/{member_id}")
def delete_board_member(member_id: int, db: Session = Depends(get_db)):
    if not content.delete_row(db, BoardMember, member_id):
        raise ApiError(404, "Board member not found", "not_found")
    return ok(message="Board member deleted")
