# familytree/routers/branch_links_router.py

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from familytree.auth import require_permission
from familytree.config import settings
from familytree.core.audit import log_activity
from familytree.core.branch_links import (
    create_link,
    delete_link,
    get_link_or_404,
    list_links,
    submit_via_link,
    update_link,
    validate_link,
)
from familytree.core.rate_limit import RateLimiter, enforce
from familytree.database import get_db
from familytree.models.branch_entry_link import BranchEntryLink
from familytree.models.family_member import FamilyMember
from familytree.models.user import User
from familytree.routers.pending_router import pending_to_dict
from familytree.schemas.branch_link_schema import (
    BranchEntrySubmit,
    BranchLinkCreate,
    BranchLinkOut,
    BranchLinkUpdate,
)
from familytree.utils.urls import branch_entry_url

router = APIRouter(prefix="/api", tags=["Branch Entry Links"])

entry_limiter = RateLimiter(settings.PENDING_SUBMISSIONS_PER_HOUR, 60 * 60, "branch-entry")


def link_to_dict(link: BranchEntryLink) -> dict:
    data = BranchLinkOut.model_validate(link).model_dump(by_alias=True, mode="json")
    data["url"] = branch_entry_url(link.token)
    return data


# ============================================================
# ADMIN
# ============================================================

@router.get("/admin/branch-links")
def get_links(
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("manage_branch_links")),
):
    return {"success": True, "links": [link_to_dict(link) for link in list_links(db, user)]}


@router.post("/admin/branch-links")
def add_link(
    payload: BranchLinkCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("manage_branch_links")),
):
    link, created = create_link(db, payload, user)

    if created:
        log_activity(
            db,
            action="CREATE_BRANCH_LINK",
            category="MEMBER",
            user=user,
            request=request,
            target_type="BRANCH_LINK",
            target_id=link.id,
            target_name=link.branch_head_name,
        )

    return {"success": True, "created": created, "link": link_to_dict(link)}


@router.patch("/admin/branch-links/{link_id}")
def edit_link(
    link_id: str,
    payload: BranchLinkUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("manage_branch_links")),
):
    link = update_link(db, get_link_or_404(db, link_id), payload, user)
    return {"success": True, "link": link_to_dict(link)}


@router.delete("/admin/branch-links/{link_id}")
def remove_link(
    link_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("manage_branch_links")),
):
    link = get_link_or_404(db, link_id)
    head_name = link.branch_head_name
    delete_link(db, link, user)

    log_activity(
        db,
        action="DELETE_BRANCH_LINK",
        category="MEMBER",
        user=user,
        request=request,
        target_type="BRANCH_LINK",
        target_id=link_id,
        target_name=head_name,
    )

    return {"success": True, "message": "Link deleted"}


# ============================================================
# PUBLIC ENTRY
# ============================================================

@router.get("/branch-entry/{token}")
def open_branch_entry(token: str, db: Session = Depends(get_db)):
    link = validate_link(db, token)
    head = db.get(FamilyMember, link.branch_head_id)

    return {
        "success": True,
        "branch": {
            "branchName": link.branch_name,
            "branchHeadId": link.branch_head_id,
            "branchHeadName": link.branch_head_name,
            "headGeneration": head.generation if head else None,
            "remainingUses": None if link.max_uses is None else link.max_uses - link.use_count,
            "expiresAt": link.expires_at.isoformat() if link.expires_at else None,
        },
    }


@router.post("/branch-entry/{token}")
def submit_branch_entry(
    token: str,
    payload: BranchEntrySubmit,
    request: Request,
    db: Session = Depends(get_db),
):
    enforce(entry_limiter, request)

    pending = submit_via_link(db, token, payload.model_dump())
    return {
        "success": True,
        "message": "Submission received and awaiting review",
        "messageAr": "تم استلام الطلب وهو بانتظار المراجعة",
        "pending": pending_to_dict(pending),
    }
