from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from familytree.auth import require_permission, require_roles
from familytree.config import settings
from familytree.core.audit import log_activity
from familytree.core.pending import (
    create_pending,
    ensure_branch_access,
    get_pending_or_404,
    list_pending,
    review_pending,
)
from familytree.core.permissions import ADMIN_ROLES
from familytree.core.rate_limit import RateLimiter, enforce
from familytree.database import get_db
from familytree.models.pending_member import PendingMember
from familytree.models.user import User
from familytree.schemas.pending_schema import PendingMemberCreate, PendingMemberOut, PendingReview

router = APIRouter(prefix="/api/admin/pending", tags=["Pending Members"])

submission_limiter = RateLimiter(settings.PENDING_SUBMISSIONS_PER_HOUR, 60 * 60, "pending-member")


def pending_to_dict(pending: PendingMember) -> dict:
    return PendingMemberOut.model_validate(pending).model_dump(by_alias=True, mode="json")


# ============================================================
# PUBLIC SUBMISSION
# ============================================================

@router.post("")
def submit_pending(payload: PendingMemberCreate, request: Request, db: Session = Depends(get_db)):
    enforce(submission_limiter, request)

    pending = create_pending(db, payload.model_dump())
    return {
        "success": True,
        "message": "Submission received and awaiting review",
        "messageAr": "تم استلام الطلب وهو بانتظار المراجعة",
        "pending": pending_to_dict(pending),
    }


# ============================================================
# REVIEW QUEUE
# ============================================================

@router.get("")
def get_pending_list(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("approve_pending_members")),
):
    items = list_pending(db, user, status)
    return {"success": True, "pending": [pending_to_dict(p) for p in items], "total": len(items)}


@router.get("/{pending_id}")
def get_pending(
    pending_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("approve_pending_members")),
):
    pending = get_pending_or_404(db, pending_id)
    ensure_branch_access(user, pending)
    return {"success": True, "pending": pending_to_dict(pending)}


@router.post("/{pending_id}")
def review(
    pending_id: str,
    payload: PendingReview,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("approve_pending_members")),
):
    pending = get_pending_or_404(db, pending_id)
    member = review_pending(db, pending, payload.action, payload.review_note, user, request)

    if member is None:
        return {"success": True, "message": "Submission rejected", "messageAr": "تم رفض الطلب"}

    return {
        "success": True,
        "message": "Submission approved",
        "messageAr": "تمت الموافقة على الطلب",
        "member": member,
    }


@router.delete("/{pending_id}")
def remove_pending(
    pending_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    pending = get_pending_or_404(db, pending_id)
    name = pending.full_name_ar or pending.first_name

    db.delete(pending)
    db.commit()

    log_activity(
        db,
        action="DELETE_PENDING_MEMBER",
        category="MEMBER",
        user=user,
        request=request,
        target_type="PENDING_MEMBER",
        target_id=pending_id,
        target_name=name,
    )

    return {"success": True, "message": "Pending member deleted"}
