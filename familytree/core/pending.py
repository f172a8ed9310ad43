from datetime import datetime
from typing import Optional

from fastapi import Request
from loguru import logger
from sqlalchemy.orm import Session

from familytree.config import settings
from familytree.core.audit import log_activity
from familytree.core.history import record_create
from familytree.core.member_store import create_member_with_auto_id
from familytree.core.permissions import can_act_on_branch
from familytree.core.rate_limit import client_ip
from familytree.errors import ApiError
from familytree.models.pending_member import PendingMember
from familytree.models.user import User
from familytree.schemas.member_schema import member_to_dict
from familytree.services.email import PENDING_APPROVED, send_template_email
from familytree.services.sms import send_sms
from familytree.utils.sanitize import sanitize_fields

# Free-text fields escaped before storage
SANITIZED_FIELDS = (
    "first_name",
    "father_name",
    "grandfather_name",
    "great_grandfather_name",
    "family_name",
    "branch",
    "full_name_ar",
    "full_name_en",
    "city",
    "occupation",
    "submitted_via",
)

REVIEW_ACTIONS = ("approve", "reject")


def create_pending(db: Session, data: dict) -> PendingMember:
    data = sanitize_fields(dict(data), SANITIZED_FIELDS)
    if not data.get("first_name"):
        raise ApiError(400, "First name is required", "الاسم الأول مطلوب")

    pending = PendingMember(
        first_name=data["first_name"],
        father_name=data.get("father_name"),
        grandfather_name=data.get("grandfather_name"),
        great_grandfather_name=data.get("great_grandfather_name"),
        family_name=data.get("family_name") or settings.DEFAULT_FAMILY_NAME,
        proposed_father_id=data.get("proposed_father_id"),
        gender=data["gender"],
        birth_year=data.get("birth_year"),
        generation=data.get("generation") or 1,
        branch=data.get("branch"),
        full_name_ar=data.get("full_name_ar"),
        full_name_en=data.get("full_name_en"),
        phone=data.get("phone"),
        city=data.get("city"),
        status=data.get("status") or "Living",
        occupation=data.get("occupation"),
        email=data.get("email"),
        submitted_via=data.get("submitted_via"),
    )
    db.add(pending)
    db.commit()
    db.refresh(pending)

    logger.info(f"Pending member {pending.id} ({pending.first_name}) submitted")
    return pending


def list_pending(db: Session, user: User, status: Optional[str] = None) -> list[PendingMember]:
    q = db.query(PendingMember)
    if status:
        q = q.filter(PendingMember.review_status == status)

    # Branch leaders only see their own branch
    if user.role == "BRANCH_LEADER":
        q = q.filter(PendingMember.branch == user.assigned_branch)

    return q.order_by(PendingMember.submitted_at.desc()).all()


def get_pending_or_404(db: Session, pending_id: str) -> PendingMember:
    pending = db.get(PendingMember, pending_id)
    if not pending:
        raise ApiError(404, "Pending member not found", "العضو المعلق غير موجود")
    return pending


def ensure_branch_access(user: User, pending: PendingMember) -> None:
    if not can_act_on_branch(user.role, user.assigned_branch, pending.branch, "approve_pending_members"):
        raise ApiError(403, "No permission for this branch", "لا تملك الصلاحية على هذا الفرع")


def _member_data(pending: PendingMember, user: User) -> dict:
    return {
        "first_name": pending.first_name,
        "father_name": pending.father_name,
        "grandfather_name": pending.grandfather_name,
        "great_grandfather_name": pending.great_grandfather_name,
        "family_name": pending.family_name,
        "father_id": pending.proposed_father_id,
        "gender": pending.gender,
        "birth_year": pending.birth_year,
        "generation": pending.generation,
        "branch": pending.branch,
        "full_name_ar": pending.full_name_ar,
        "full_name_en": pending.full_name_en,
        "phone": pending.phone,
        "city": pending.city,
        "status": pending.status,
        "occupation": pending.occupation,
        "email": pending.email,
        "created_by": user.id,
    }


def review_pending(
    db: Session,
    pending: PendingMember,
    action: Optional[str],
    review_note: Optional[str],
    user: User,
    request: Optional[Request] = None,
) -> Optional[dict]:
    """
    Approve or reject. Approval inserts the member and returns it as JSON.
    """
    if action not in REVIEW_ACTIONS:
        raise ApiError(400, "Invalid action", "الإجراء غير صالح")

    if pending.review_status != "PENDING":
        raise ApiError(400, "Already processed", "تمت المعالجة مسبقاً")

    ensure_branch_access(user, pending)
    target_name = pending.full_name_ar or pending.first_name

    if action == "reject":
        pending.review_status = "REJECTED"
        pending.reviewed_by = user.id
        pending.reviewed_at = datetime.utcnow()
        pending.review_note = review_note
        db.commit()

        log_activity(
            db,
            action="PENDING_MEMBER_REJECTED",
            category="MEMBER",
            user=user,
            request=request,
            target_type="PENDING_MEMBER",
            target_id=pending.id,
            target_name=target_name,
            details={"reason": review_note},
        )
        return None

    member = create_member_with_auto_id(db, _member_data(pending, user))
    member_json = member_to_dict(member)

    pending.review_status = "APPROVED"
    pending.reviewed_by = user.id
    pending.reviewed_at = datetime.utcnow()
    pending.review_note = review_note
    pending.approved_member_id = member.id
    record_create(db, member_json, user, client_ip(request) if request else None)
    db.commit()

    log_activity(
        db,
        action="PENDING_MEMBER_APPROVED",
        category="MEMBER",
        user=user,
        request=request,
        target_type="PENDING_MEMBER",
        target_id=pending.id,
        target_name=target_name,
        details={"newMemberId": member.id},
    )

    if pending.email:
        result = send_template_email(
            pending.email,
            PENDING_APPROVED,
            {"memberName": target_name, "viewUrl": f"{settings.BASE_URL}/member/{member.id}"},
        )
        if not result.success:
            logger.warning(f"Approval email to {pending.email} failed: {result.error}")

    if pending.phone:
        result = send_sms(pending.phone, f"تمت الموافقة على إضافة {target_name} إلى شجرة العائلة")
        if not result.success:
            logger.warning(f"Approval SMS to {pending.phone} failed: {result.error}")

    return member_json
