"""
Change history: one row per changed field, rows of one edit share a batch_id.
"""
import json
from typing import Optional
from uuid import uuid4

from loguru import logger
from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from familytree.core.member_store import create_member, update_member
from familytree.errors import ApiError, NotFoundError
from familytree.models.change_history import ChangeHistory
from familytree.models.family_member import FamilyMember
from familytree.models.user import User
from familytree.schemas.history_schema import RollbackRequest
from familytree.schemas.member_schema import MemberOut, MemberUpdate, member_to_dict

SYSTEM_ACTOR = ("admin", "المدير")

# field_name used for rows that describe the whole member (create / delete)
MEMBER_FIELD = "member"

# camelCase keys an edit can change, in display order
TRACKED_KEYS = tuple(to_camel(name) for name in MemberUpdate.model_fields if name != "expected_version")


def _actor(user: Optional[User]) -> tuple[str, str]:
    if user is None:
        return SYSTEM_ACTOR
    return user.id, user.name_arabic


def _to_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _dumps(member: dict) -> str:
    return json.dumps(member, ensure_ascii=False)


# ============================================================
# RECORDING
# ============================================================

def record_change(
    db: Session,
    *,
    member_id: str,
    field_name: str,
    change_type: str,
    old_value=None,
    new_value=None,
    user: Optional[User] = None,
    changed_by: Optional[str] = None,
    changed_by_name: Optional[str] = None,
    batch_id: Optional[str] = None,
    full_snapshot: Optional[str] = None,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> ChangeHistory:
    """Stage a history row; the caller commits."""
    actor_id, actor_name = _actor(user)

    entry = ChangeHistory(
        member_id=member_id,
        field_name=field_name,
        old_value=_to_text(old_value),
        new_value=_to_text(new_value),
        change_type=change_type,
        changed_by=changed_by or actor_id,
        changed_by_name=changed_by_name or actor_name,
        batch_id=batch_id,
        full_snapshot=full_snapshot,
        reason=reason,
        ip_address=ip_address,
    )
    db.add(entry)
    return entry


def record_create(db: Session, member: dict, user=None, ip_address=None) -> ChangeHistory:
    return record_change(
        db,
        member_id=member["id"],
        field_name=MEMBER_FIELD,
        change_type="CREATE",
        new_value=member,
        user=user,
        ip_address=ip_address,
    )


def record_update(
    db: Session,
    before: dict,
    after: dict,
    user=None,
    ip_address=None,
    reason: Optional[str] = None,
) -> Optional[str]:
    """
    One row per changed field. Returns the shared batch id, or None when nothing changed.
    """
    changed = [key for key in TRACKED_KEYS if before.get(key) != after.get(key)]
    if not changed:
        return None

    batch_id = str(uuid4())
    snapshot = _dumps(before)

    for key in changed:
        record_change(
            db,
            member_id=before["id"],
            field_name=key,
            change_type="PARENT_CHANGE" if key == "fatherId" else "UPDATE",
            old_value=before.get(key),
            new_value=after.get(key),
            user=user,
            batch_id=batch_id,
            full_snapshot=snapshot,
            reason=reason,
            ip_address=ip_address,
        )
    return batch_id


def record_delete(db: Session, before: dict, user=None, ip_address=None, reason=None) -> ChangeHistory:
    return record_change(
        db,
        member_id=before["id"],
        field_name=MEMBER_FIELD,
        change_type="DELETE",
        old_value=before,
        user=user,
        full_snapshot=_dumps(before),
        reason=reason,
        ip_address=ip_address,
    )


# ============================================================
# LISTING
# ============================================================

def list_changes(
    db: Session,
    limit: int = 100,
    offset: int = 0,
    member_id: Optional[str] = None,
    change_type: Optional[str] = None,
) -> tuple[list[dict], int]:
    q = db.query(ChangeHistory, FamilyMember.full_name_ar, FamilyMember.first_name).outerjoin(
        FamilyMember, FamilyMember.id == ChangeHistory.member_id
    )
    if member_id:
        q = q.filter(ChangeHistory.member_id == member_id)
    if change_type:
        q = q.filter(ChangeHistory.change_type == change_type)

    total = q.count()
    rows = q.order_by(ChangeHistory.changed_at.desc()).offset(offset).limit(limit).all()

    changes = []
    for change, full_name_ar, first_name in rows:
        item = {
            "id": change.id,
            "memberId": change.member_id,
            "fieldName": change.field_name,
            "oldValue": change.old_value,
            "newValue": change.new_value,
            "changeType": change.change_type,
            "changedBy": change.changed_by,
            "changedByName": change.changed_by_name,
            "changedAt": change.changed_at.isoformat() if change.changed_at else None,
            "batchId": change.batch_id,
            "fullSnapshot": change.full_snapshot,
            "reason": change.reason,
            "ipAddress": change.ip_address,
            "memberName": full_name_ar or first_name,
        }
        changes.append(item)

    return changes, total


# ============================================================
# ROLLBACK
# ============================================================

def _parse_values(values_by_key: dict) -> dict:
    try:
        parsed = MemberUpdate.model_validate(values_by_key).model_dump(exclude_unset=True)
    except ValidationError as e:
        raise ApiError(400, f"Stored value can no longer be applied: {e.errors()[0]['msg']}", "لا يمكن استرجاع القيمة المخزنة")
    parsed.pop("expected_version", None)
    return parsed


def _restore_fields(
    db: Session,
    member_id: str,
    values_by_key: dict,
    user: User,
    ip_address: Optional[str],
    batch_id: str,
    reason: str,
) -> int:
    current = db.get(FamilyMember, member_id)
    if current is None:
        raise NotFoundError(f"Member {member_id} not found")

    before = member_to_dict(current)
    update_member(db, member_id, _parse_values(values_by_key), modified_by=user.id)
    after = member_to_dict(db.get(FamilyMember, member_id))

    restored = 0
    for key in values_by_key:
        if before.get(key) == after.get(key):
            continue
        record_change(
            db,
            member_id=member_id,
            field_name=key,
            change_type="RESTORE",
            old_value=before.get(key),
            new_value=after.get(key),
            user=user,
            batch_id=batch_id,
            full_snapshot=_dumps(before),
            reason=reason,
            ip_address=ip_address,
        )
        restored += 1

    db.commit()
    return restored


def _restore_deleted(db: Session, snapshot: dict, user: User, ip_address, batch_id, reason) -> int:
    data = MemberOut.model_validate(snapshot).model_dump()
    data["created_by"] = user.id
    member = create_member(db, data)

    record_change(
        db,
        member_id=member.id,
        field_name=MEMBER_FIELD,
        change_type="RESTORE",
        new_value=member_to_dict(member),
        user=user,
        batch_id=batch_id,
        reason=reason,
        ip_address=ip_address,
    )
    db.commit()
    return 1


def _get_change(db: Session, change_id: Optional[str]) -> ChangeHistory:
    if not change_id:
        raise ApiError(400, "changeId is required", "رقم التغيير مطلوب")
    change = db.get(ChangeHistory, change_id)
    if not change:
        raise ApiError(404, "Change not found", "التغيير غير موجود")
    return change


def rollback(db: Session, req: RollbackRequest, user: User, ip_address: Optional[str] = None) -> dict:
    batch_id = str(uuid4())

    if req.rollback_type == "SINGLE_CHANGE":
        change = _get_change(db, req.change_id)
        if change.field_name not in TRACKED_KEYS:
            raise ApiError(400, "This change cannot be rolled back field by field", "لا يمكن التراجع عن هذا التغيير")

        reason = req.reason or f"Rollback of change {change.id}"
        count = _restore_fields(
            db, change.member_id, {change.field_name: change.old_value}, user, ip_address, batch_id, reason
        )

    elif req.rollback_type == "BATCH":
        if not req.batch_id:
            raise ApiError(400, "batchId is required", "رقم الدفعة مطلوب")

        changes = (
            db.query(ChangeHistory)
            .filter(ChangeHistory.batch_id == req.batch_id)
            .order_by(ChangeHistory.changed_at.desc())
            .all()
        )
        if not changes:
            raise ApiError(404, "No changes found for this batch", "لا توجد تغييرات لهذه الدفعة")

        # Newest first, so the oldest old_value of each field wins
        per_member: dict[str, dict] = {}
        for change in changes:
            if change.field_name in TRACKED_KEYS:
                per_member.setdefault(change.member_id, {})[change.field_name] = change.old_value

        reason = req.reason or f"Batch rollback of {req.batch_id}"
        count = sum(
            _restore_fields(db, member_id, values, user, ip_address, batch_id, reason)
            for member_id, values in per_member.items()
        )

    else:
        if req.change_id:
            change = _get_change(db, req.change_id)
        elif req.member_id:
            change = (
                db.query(ChangeHistory)
                .filter(ChangeHistory.member_id == req.member_id, ChangeHistory.full_snapshot.isnot(None))
                .order_by(ChangeHistory.changed_at.desc())
                .first()
            )
        else:
            raise ApiError(400, "changeId or memberId is required", "رقم التغيير أو رقم العضو مطلوب")

        if not change or not change.full_snapshot:
            raise ApiError(404, "No snapshot found for rollback", "لا توجد نسخة للاسترجاع")

        try:
            snapshot = json.loads(change.full_snapshot)
        except ValueError:
            raise ApiError(400, "Invalid snapshot data - cannot parse", "بيانات النسخة غير صالحة")

        reason = req.reason or f"Full restore from change {change.id}"
        if db.get(FamilyMember, change.member_id) is None:
            count = _restore_deleted(db, snapshot, user, ip_address, batch_id, reason)
        else:
            values = {key: snapshot.get(key) for key in TRACKED_KEYS if key in snapshot}
            count = _restore_fields(db, change.member_id, values, user, ip_address, batch_id, reason)

    logger.info(f"Rollback {req.rollback_type} by {user.email}: {count} value(s) restored")
    return {"rolledBackCount": count, "batchId": batch_id}
