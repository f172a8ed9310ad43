from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from familytree.auth import require_permission
from familytree.core.audit import log_activity
from familytree.core.history import list_changes, record_change, rollback
from familytree.core.rate_limit import client_ip
from familytree.database import get_db
from familytree.models.user import User
from familytree.schemas.history_schema import ChangeHistoryCreate, ChangeHistoryOut, RollbackRequest

router = APIRouter(prefix="/api/admin", tags=["Change History"])


@router.get("/history")
def get_history(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    member_id: Optional[str] = Query(None, alias="memberId"),
    change_type: Optional[str] = Query(None, alias="changeType"),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("view_change_history")),
):
    changes, total = list_changes(db, limit=limit, offset=offset, member_id=member_id, change_type=change_type)
    return {"success": True, "changes": changes, "total": total}


@router.post("/history")
def add_history_entry(
    payload: ChangeHistoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("edit_member")),
):
    """Record a manual history row. changedBy falls back to the system actor."""
    entry = record_change(
        db,
        member_id=payload.member_id,
        field_name=payload.field_name,
        change_type=payload.change_type,
        old_value=payload.old_value,
        new_value=payload.new_value,
        changed_by=payload.changed_by,
        changed_by_name=payload.changed_by_name,
        batch_id=payload.batch_id,
        full_snapshot=payload.full_snapshot,
        reason=payload.reason,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(entry)

    return {
        "success": True,
        "change": ChangeHistoryOut.model_validate(entry).model_dump(by_alias=True, mode="json"),
    }


@router.post("/rollback")
def rollback_changes(
    payload: RollbackRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("edit_member")),
):
    result = rollback(db, payload, user, client_ip(request))

    log_activity(
        db,
        action="ROLLBACK",
        category="MEMBER",
        user=user,
        request=request,
        target_type="CHANGE",
        target_id=payload.change_id or payload.batch_id or payload.member_id,
        details={"rollbackType": payload.rollback_type, **result},
    )

    return {"success": True, "message": "Rollback completed", **result}
