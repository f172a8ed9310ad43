import secrets
import string
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import or_
from sqlalchemy.orm import Session

from familytree.core.pending import create_pending
from familytree.core.permissions import can_act_on_branch
from familytree.errors import ApiError
from familytree.models.branch_entry_link import BranchEntryLink
from familytree.models.family_member import FamilyMember
from familytree.models.pending_member import PendingMember
from familytree.models.user import User
from familytree.schemas.branch_link_schema import BranchLinkCreate, BranchLinkUpdate

TOKEN_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
TOKEN_LENGTH = 12


def generate_token() -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


# ============================================================
# ADMIN SIDE
# ============================================================

def _branch_head_or_404(db: Session, member_id: str) -> FamilyMember:
    head = db.get(FamilyMember, member_id)
    if not head:
        raise ApiError(404, "Branch head not found", "رأس الفرع غير موجود")
    return head


def _ensure_branch_access(user: User, branch: Optional[str]) -> None:
    if not can_act_on_branch(user.role, user.assigned_branch, branch, "manage_branch_links"):
        raise ApiError(403, "No permission for this branch", "لا تملك الصلاحية على هذا الفرع")


def list_links(db: Session, user: User) -> list[BranchEntryLink]:
    q = db.query(BranchEntryLink)
    if user.role == "BRANCH_LEADER":
        q = q.filter(BranchEntryLink.branch_name == user.assigned_branch)
    return q.order_by(BranchEntryLink.created_at.desc()).all()


def create_link(db: Session, payload: BranchLinkCreate, user: User) -> tuple[BranchEntryLink, bool]:
    """
    Returns (link, created). A head with an active link gets that link back.
    """
    head = _branch_head_or_404(db, payload.branch_head_id)
    branch_name = payload.branch_name or head.branch
    _ensure_branch_access(user, branch_name)

    existing = (
        db.query(BranchEntryLink)
        .filter(BranchEntryLink.branch_head_id == head.id, BranchEntryLink.is_active.is_(True))
        .first()
    )
    if existing:
        return existing, False

    token = payload.token or generate_token()
    if db.query(BranchEntryLink).filter(BranchEntryLink.token == token).first():
        raise ApiError(409, "Token already in use", "الرمز مستخدم مسبقاً")

    link = BranchEntryLink(
        token=token,
        branch_name=branch_name,
        branch_head_id=head.id,
        branch_head_name=payload.branch_head_name or head.full_name_ar or head.first_name,
        is_active=payload.is_active,
        expires_at=payload.expires_at,
        max_uses=payload.max_uses,
        created_by=user.id,
    )
    db.add(link)
    db.commit()
    db.refresh(link)

    logger.info(f"Branch link {link.token} created for {head.id} by {user.email}")
    return link, True


def get_link_or_404(db: Session, link_id: str) -> BranchEntryLink:
    link = db.get(BranchEntryLink, link_id)
    if not link:
        raise ApiError(404, "Branch link not found", "الرابط غير موجود")
    return link


def update_link(db: Session, link: BranchEntryLink, payload: BranchLinkUpdate, user: User) -> BranchEntryLink:
    _ensure_branch_access(user, link.branch_name)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(link, field, value)

    db.commit()
    db.refresh(link)
    return link


def delete_link(db: Session, link: BranchEntryLink, user: User) -> None:
    _ensure_branch_access(user, link.branch_name)
    db.delete(link)
    db.commit()
    logger.info(f"Branch link {link.token} deleted by {user.email}")


# ============================================================
# PUBLIC SIDE
# ============================================================

def validate_link(db: Session, token: str) -> BranchEntryLink:
    link = db.query(BranchEntryLink).filter(BranchEntryLink.token == token).first()

    if not link or not link.is_active:
        raise ApiError(404, "Invalid or inactive link", "الرابط غير صالح أو غير مفعل")

    if link.expires_at and link.expires_at < datetime.utcnow():
        raise ApiError(410, "This link has expired", "انتهت صلاحية الرابط")

    if link.max_uses is not None and link.use_count >= link.max_uses:
        raise ApiError(410, "This link has reached its usage limit", "تم استنفاد عدد مرات استخدام الرابط")

    return link


def submit_via_link(db: Session, token: str, data: dict) -> PendingMember:
    """
    Queue a pending member under the link's branch head.
    Branch, generation and father default from the head.
    """
    link = validate_link(db, token)
    head = db.get(FamilyMember, link.branch_head_id)

    data = dict(data)
    data["submitted_via"] = token
    data["branch"] = data.get("branch") or link.branch_name or (head.branch if head else None)
    if head:
        data["proposed_father_id"] = data.get("proposed_father_id") or head.id
        data["generation"] = data.get("generation") or head.generation + 1

    # Conditional increment, matches nothing once max_uses is reached
    claimed = (
        db.query(BranchEntryLink)
        .filter(
            BranchEntryLink.id == link.id,
            or_(BranchEntryLink.max_uses.is_(None), BranchEntryLink.use_count < BranchEntryLink.max_uses),
        )
        .update({BranchEntryLink.use_count: BranchEntryLink.use_count + 1}, synchronize_session="fetch")
    )
    if not claimed:
        db.rollback()
        raise ApiError(410, "This link has reached its usage limit", "تم استنفاد عدد مرات استخدام الرابط")

    return create_pending(db, data)
