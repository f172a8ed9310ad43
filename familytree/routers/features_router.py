from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from familytree.auth import require_roles
from familytree.core.audit import log_activity
from familytree.core.feature_flags import get_flags, save_flags, valid_updates
from familytree.core.permissions import ADMIN_ROLES
from familytree.database import get_db
from familytree.errors import ApiError
from familytree.models.user import User

router = APIRouter(prefix="/api/admin/features", tags=["Feature Flags"])


@router.get("")
def read_flags(db: Session = Depends(get_db)):
    return {"success": True, "flags": get_flags(db)}


@router.put("")
def write_flags(
    request: Request,
    body: dict = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    updates = valid_updates(body)
    if not updates:
        raise ApiError(400, "No valid updates provided", "لا توجد تحديثات صالحة")

    flags, fallback = save_flags(db, updates, user.id)

    if fallback:
        return {
            "success": True,
            "fallback": True,
            "flags": flags,
            "message": "Saved locally (database unavailable)",
            "messageAr": "تم الحفظ محلياً (قاعدة البيانات غير متاحة)",
        }

    log_activity(
        db,
        action="UPDATE_FEATURE_FLAGS",
        category="SETTINGS",
        user=user,
        request=request,
        target_type="FEATURE_FLAGS",
        target_id="default",
        details=updates,
    )

    return {
        "success": True,
        "flags": flags,
        "message": "Feature flags updated",
        "messageAr": "تم تحديث الميزات",
    }
