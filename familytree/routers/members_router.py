# familytree/routers/members_router.py

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from familytree.auth import require_permission
from familytree.core import member_reads
from familytree.core.audit import log_activity
from familytree.core.history import record_create, record_delete, record_update
from familytree.core.member_store import create_member_with_auto_id, delete_member, update_member
from familytree.core.permissions import can_act_on_branch
from familytree.core.rate_limit import client_ip
from familytree.database import get_db
from familytree.errors import ApiError, NotFoundError
from familytree.models.family_member import FamilyMember
from familytree.models.user import User
from familytree.schemas.member_schema import MemberCreate, MemberUpdate, member_to_dict

router = APIRouter(prefix="/api", tags=["Members"])


# ============================================================
# HELPERS
# ============================================================

def _ensure_branch(user: User, branch: Optional[str], permission: str) -> None:
    if not can_act_on_branch(user.role, user.assigned_branch, branch, permission):
        raise ApiError(403, "No permission for this branch", "لا تملك الصلاحية على هذا الفرع")


def _stored_member_or_404(db: Session, member_id: str) -> FamilyMember:
    member = db.get(FamilyMember, member_id)
    if not member:
        raise NotFoundError(f"Member {member_id} not found")
    return member


# ============================================================
# PUBLIC READS
# ============================================================

@router.get("/members")
def list_members(
    gender: Optional[str] = None,
    generation: Optional[int] = None,
    branch: Optional[str] = None,
    males: bool = False,
    db: Session = Depends(get_db),
):
    members = member_reads.get_male_members(db) if males else member_reads.get_all_members(db)

    if gender:
        members = [m for m in members if m["gender"] == gender]
    if generation is not None:
        members = [m for m in members if m["generation"] == generation]
    if branch:
        members = [m for m in members if m.get("branch") == branch]

    return {"success": True, "data": members, "count": len(members)}


@router.get("/members/next-id")
def next_member_id(db: Session = Depends(get_db)):
    return {"success": True, "nextId": member_reads.get_next_id_for_display(db)}


@router.get("/members/{member_id}")
def get_member(member_id: str, db: Session = Depends(get_db)):
    member = member_reads.get_member_by_id(db, member_id)
    if not member:
        raise ApiError(404, "Member not found", "العضو غير موجود")

    return {
        "success": True,
        "data": {**member, "children": member_reads.get_children(db, member_id)},
    }


@router.get("/tree")
def family_tree(db: Session = Depends(get_db)):
    return {"success": True, "data": member_reads.build_family_tree(db)}


@router.get("/statistics")
def statistics(db: Session = Depends(get_db)):
    return {"success": True, "data": member_reads.get_statistics(db)}


# ============================================================
# ADMIN WRITES
# ============================================================

@router.post("/admin/members")
def add_member(
    payload: MemberCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("add_member")),
):
    branch = payload.branch
    if not branch and payload.father_id:
        father = db.get(FamilyMember, payload.father_id)
        branch = father.branch if father else None
    _ensure_branch(user, branch, "add_member")

    data = payload.model_dump()
    data["created_by"] = user.id

    member = create_member_with_auto_id(db, data)
    member_json = member_to_dict(member)

    record_create(db, member_json, user, client_ip(request))
    db.commit()

    log_activity(
        db,
        action="ADD_MEMBER",
        category="MEMBER",
        user=user,
        request=request,
        target_type="MEMBER",
        target_id=member.id,
        target_name=member.full_name_ar or member.first_name,
    )

    return {"success": True, "data": member_json}


@router.put("/admin/members/{member_id}")
def edit_member(
    member_id: str,
    payload: MemberUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("edit_member")),
):
    current = _stored_member_or_404(db, member_id)
    _ensure_branch(user, current.branch, "edit_member")

    before = member_to_dict(current)
    updates = payload.model_dump(exclude_unset=True)
    expected_version = updates.pop("expected_version", None)

    member = update_member(db, member_id, updates, expected_version, modified_by=user.id)
    after = member_to_dict(member)

    batch_id = record_update(db, before, after, user, client_ip(request))
    db.commit()

    log_activity(
        db,
        action="UPDATE_MEMBER",
        category="MEMBER",
        user=user,
        request=request,
        target_type="MEMBER",
        target_id=member_id,
        target_name=member.full_name_ar or member.first_name,
        details={"batchId": batch_id, "fields": sorted(updates)},
    )

    return {"success": True, "data": after, "batchId": batch_id}


@router.delete("/admin/members/{member_id}")
def remove_member(
    member_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("delete_member")),
):
    current = _stored_member_or_404(db, member_id)
    _ensure_branch(user, current.branch, "delete_member")
    before = member_to_dict(current)

    delete_member(db, member_id)

    record_delete(db, before, user, client_ip(request))
    db.commit()

    log_activity(
        db,
        action="DELETE_MEMBER",
        category="MEMBER",
        user=user,
        request=request,
        target_type="MEMBER",
        target_id=member_id,
        target_name=before["fullNameAr"] or before["firstName"],
    )

    return {"success": True, "message": "Member deleted"}
