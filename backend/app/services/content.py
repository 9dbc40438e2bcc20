# app/services/content.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.board import BoardMember
from app.models.supporter import Supporter
from app.schemas.content import BoardMemberOut, ReorderItem, SupporterOut

Row = TypeVar("Row", BoardMember, Supporter)


def list_board_members(db: Session) -> List[Dict[str, Any]]:
    """Board members by display order, newest first within the same order."""
    rows = db.execute(
        select(BoardMember).order_by(BoardMember.order.asc(), BoardMember.created_at.desc(), BoardMember.id.desc())
    ).scalars().all()
    return [BoardMemberOut.model_validate(r).model_dump() for r in rows]


def list_supporters(db: Session) -> List[Dict[str, Any]]:
    rows = db.execute(
        select(Supporter).order_by(Supporter.order.asc(), Supporter.id.asc())
    ).scalars().all()
    return [SupporterOut.model_validate(r).model_dump() for r in rows]


def create_row(db: Session, model: Type[Row], fields: Dict[str, Any]) -> Row:
    row = model(**fields)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_row(db: Session, model: Type[Row], row_id: int, changes: Dict[str, Any]) -> Optional[Row]:
    """Apply non-empty changes; returns None when the row does not exist."""
    row = db.get(model, row_id)
    if row is None:
        return None
    for key, value in changes.items():
        setattr(row, key, value)
    db.commit()
    db.refresh(row)
    return row


def delete_row(db: Session, model: Type[Row], row_id: int) -> bool:
    row = db.get(model, row_id)
    if row is None:
        return False
    db.delete(row)
    db.commit()
    return True


def reorder_rows(db: Session, model: Type[Row], items: Iterable[ReorderItem]) -> int:
    """Set `order` for each known id; unknown ids are skipped. Returns rows touched."""
    touched = 0
    for item in items:
        row = db.get(model, item.id)
        if row is None:
            continue
        row.order = item.order
        touched += 1
    db.commit()
    return touched


def non_empty_changes(update: Any) -> Dict[str, Any]:
    """Fields the client actually sent with a truthy value."""
    return {k: v for k, v in update.model_dump(exclude_unset=True).items() if v}
