# familytree/routers/snapshots_router.py

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from familytree.auth import require_permission, require_roles
from familytree.core.audit import log_activity
from familytree.core.permissions import ADMIN_ROLES
from familytree.core.snapshots import build_download, create_snapshot, get_snapshot_or_404, restore_snapshot
from familytree.database import get_db
from familytree.errors import ApiError
from familytree.models.snapshot import Snapshot
from familytree.models.user import User
from familytree.schemas.snapshot_schema import SnapshotAction, SnapshotCreate, SnapshotDetailOut, SnapshotOut

router = APIRouter(prefix="/api/admin/snapshots", tags=["Snapshots"])


def _out(snapshot: Snapshot, detail: bool = False) -> dict:
    schema = SnapshotDetailOut if detail else SnapshotOut
    return schema.model_validate(snapshot).model_dump(by_alias=True, mode="json")


# ----------------- LIST ------------------

@router.get("")
def list_snapshots(
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    snapshots = db.query(Snapshot).order_by(Snapshot.created_at.desc()).all()
    return {"success": True, "snapshots": [_out(s) for s in snapshots]}


# ----------------- CREATE ------------------

@router.post("")
def take_snapshot(
    payload: SnapshotCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("create_snapshot")),
):
    snapshot = create_snapshot(
        db,
        name=payload.name,
        description=payload.description,
        snapshot_type=payload.snapshot_type,
        user=user,
    )

    log_activity(
        db,
        action="CREATE_SNAPSHOT",
        category="DATA",
        user=user,
        request=request,
        target_type="SNAPSHOT",
        target_id=snapshot.id,
        target_name=snapshot.name,
        details={"memberCount": snapshot.member_count},
    )

    return {"success": True, "snapshot": _out(snapshot)}


# ----------------- GET / DOWNLOAD ------------------

@router.get("/{snapshot_id}")
def get_snapshot(
    snapshot_id: str,
    download: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    snapshot = get_snapshot_or_404(db, snapshot_id)

    if not download:
        return {"success": True, "snapshot": _out(snapshot, detail=True)}

    document, filename = build_download(snapshot, user)
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ----------------- RESTORE ------------------

@router.post("/{snapshot_id}")
def snapshot_action(
    snapshot_id: str,
    payload: SnapshotAction,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("restore_snapshot")),
):
    if payload.action != "restore":
        raise ApiError(400, "Invalid action", "إجراء غير صالح")

    snapshot = get_snapshot_or_404(db, snapshot_id)
    result = restore_snapshot(db, snapshot, user)

    log_activity(
        db,
        action="RESTORE_SNAPSHOT",
        category="DATA",
        user=user,
        request=request,
        target_type="SNAPSHOT",
        target_id=snapshot.id,
        target_name=snapshot.name,
        details={
            "restoredCount": result["restoredCount"],
            "preRestoreSnapshotId": result["preRestoreSnapshotId"],
            "errorCount": len(result["errors"]),
        },
    )

    return {
        "success": True,
        "message": f"Restored {result['restoredCount']} members",
        "messageAr": f"تمت استعادة {result['restoredCount']} عضو",
        **result,
    }


# ----------------- DELETE ------------------

@router.delete("/{snapshot_id}")
def remove_snapshot(
    snapshot_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles("SUPER_ADMIN")),
):
    snapshot = get_snapshot_or_404(db, snapshot_id)
    name = snapshot.name

    db.delete(snapshot)
    db.commit()

    log_activity(
        db,
        action="DELETE_SNAPSHOT",
        category="DATA",
        user=user,
        request=request,
        target_type="SNAPSHOT",
        target_id=snapshot_id,
        target_name=name,
    )

    return {"success": True, "message": "Snapshot deleted"}
