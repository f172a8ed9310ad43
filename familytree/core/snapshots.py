import json
from datetime import datetime
from typing import Optional

from loguru import logger
from pydantic.alias_generators import to_snake
from sqlalchemy.orm import Session

from familytree.core.member_store import bulk_create_members, delete_all_members
from familytree.errors import ApiError
from familytree.models.family_member import FamilyMember
from familytree.models.snapshot import Snapshot
from familytree.models.user import User
from familytree.schemas.member_schema import member_to_dict

BACKUP_FORMAT = "FamilyTree_Backup_v1"


def export_members(db: Session) -> list[dict]:
    """Every stored member in its JSON shape (no fallback data)."""
    members = db.query(FamilyMember).order_by(FamilyMember.id).all()
    return [member_to_dict(m) for m in members]


def create_snapshot(
    db: Session,
    name: str,
    user: User,
    description: Optional[str] = None,
    snapshot_type: str = "MANUAL",
) -> Snapshot:
    members = export_members(db)

    snapshot = Snapshot(
        name=name,
        description=description,
        tree_data=json.dumps(members, ensure_ascii=False),
        member_count=len(members),
        created_by=user.id,
        created_by_name=user.name_arabic,
        snapshot_type=snapshot_type,
    )
    db.add(snapshot)
    db.commit()
    db.refresh(snapshot)

    logger.info(f"Snapshot {snapshot.id} ({snapshot_type}) taken with {snapshot.member_count} members")
    return snapshot


def get_snapshot_or_404(db: Session, snapshot_id: str) -> Snapshot:
    snapshot = db.get(Snapshot, snapshot_id)
    if not snapshot:
        raise ApiError(404, "Snapshot not found", "النسخة غير موجودة")
    return snapshot


def build_download(snapshot: Snapshot, user: User) -> tuple[dict, str]:
    """Backup document plus a suggested file name."""
    try:
        members = json.loads(snapshot.tree_data)
    except ValueError:
        members = snapshot.tree_data

    document = {
        "snapshotId": snapshot.id,
        "snapshotName": snapshot.name,
        "snapshotType": snapshot.snapshot_type,
        "createdAt": snapshot.created_at.isoformat() if snapshot.created_at else None,
        "createdBy": snapshot.created_by_name,
        "memberCount": snapshot.member_count,
        "description": snapshot.description,
        "members": members,
        "metadata": {
            "exportedAt": datetime.utcnow().isoformat(),
            "exportedBy": user.name_arabic,
            "format": BACKUP_FORMAT,
        },
    }
    filename = f"backup_{snapshot.name or snapshot.id}_{datetime.utcnow().date().isoformat()}.json"
    return document, filename


def _parse_members(snapshot: Snapshot) -> list:
    try:
        members = json.loads(snapshot.tree_data)
    except ValueError:
        raise ApiError(400, "Invalid snapshot data", "بيانات النسخة غير صالحة")

    if not isinstance(members, list):
        raise ApiError(400, "Invalid snapshot format", "صيغة النسخة غير صالحة")
    return members


def restore_snapshot(db: Session, snapshot: Snapshot, user: User) -> dict:
    """
    Replace every member with the snapshot's members.
    A PRE_RESTORE snapshot of the current state is taken first.
    """
    members = _parse_members(snapshot)

    pre_restore = create_snapshot(
        db,
        name=f"Pre-Restore Backup (before restoring {snapshot.name or snapshot.id})",
        description=f"Automatic backup created before restoring snapshot {snapshot.id}",
        snapshot_type="PRE_RESTORE",
        user=user,
    )

    rows, errors = [], []
    for member in members:
        if not isinstance(member, dict):
            errors.append(f"Failed to restore member: unexpected entry {member!r}")
            continue
        rows.append({to_snake(k): v for k, v in member.items() if k not in ("createdAt", "updatedAt")})

    delete_all_members(db)
    result = bulk_create_members(db, rows)
    errors.extend(f"Failed to restore member {e}" for e in result["errors"])

    logger.info(f"Restored {result['success']} members from snapshot {snapshot.id} ({len(errors)} errors)")
    return {
        "restoredCount": result["success"],
        "preRestoreSnapshotId": pre_restore.id,
        "errors": errors,
    }
