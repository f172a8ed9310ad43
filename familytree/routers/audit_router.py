from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from familytree.auth import require_permission
from familytree.database import get_db
from familytree.models.activity_log import ActivityLog
from familytree.models.user import User
from familytree.schemas.activity_schema import ActivityLogOut

router = APIRouter(prefix="/api/admin/audit", tags=["Activity Log"])


@router.get("")
def get_activity(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    category: Optional[str] = None,
    action: Optional[str] = None,
    user_id: Optional[str] = Query(None, alias="userId"),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("view_audit_logs")),
):
    q = db.query(ActivityLog)
    if category:
        q = q.filter(ActivityLog.category == category)
    if action:
        q = q.filter(ActivityLog.action == action)
    if user_id:
        q = q.filter(ActivityLog.user_id == user_id)

    total = q.count()
    logs = q.order_by(ActivityLog.created_at.desc()).offset(offset).limit(limit).all()

    return {
        "success": True,
        "logs": [ActivityLogOut.model_validate(entry).model_dump(by_alias=True, mode="json") for entry in logs],
        "total": total,
    }
