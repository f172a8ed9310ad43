# familytree/routers/images_router.py

from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Query,
    Request,
    UploadFile,
)
from sqlalchemy.orm import Session

from familytree.auth import get_optional_user, require_permission, require_roles
from familytree.core import images
from familytree.core.audit import log_activity
from familytree.core.permissions import ADMIN_ROLES
from familytree.core.rate_limit import client_ip
from familytree.database import get_db
from familytree.models.image import MemberPhoto, PendingImage
from familytree.models.user import User
from familytree.schemas.image_schema import ImageReview, MemberPhotoOut, PendingImageOut

router = APIRouter(prefix="/api/images", tags=["Images"])


def _image_out(image: PendingImage) -> dict:
    return PendingImageOut.model_validate(image).model_dump(by_alias=True, mode="json")


def _photo_out(photo: MemberPhoto) -> dict:
    return MemberPhotoOut.model_validate(photo).model_dump(by_alias=True, mode="json")


def _split_ids(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


# =====================================================================
# UPLOAD
# =====================================================================

@router.post("/upload")
def upload(
    request: Request,
    file: UploadFile = File(...),
    uploaded_by_name: Optional[str] = Form(None, alias="uploadedByName"),
    uploaded_by_email: Optional[str] = Form(None, alias="uploadedByEmail"),
    category: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    title_ar: Optional[str] = Form(None, alias="titleAr"),
    caption: Optional[str] = Form(None),
    caption_ar: Optional[str] = Form(None, alias="captionAr"),
    year: Optional[int] = Form(None),
    member_id: Optional[str] = Form(None, alias="memberId"),
    member_name: Optional[str] = Form(None, alias="memberName"),
    tagged_member_ids: Optional[str] = Form(None, alias="taggedMemberIds"),
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    image = images.upload_image(
        db,
        file,
        uploaded_by_name=uploaded_by_name,
        category=category,
        title=title,
        title_ar=title_ar,
        caption=caption,
        caption_ar=caption_ar,
        year=year,
        member_id=member_id,
        member_name=member_name,
        tagged_member_ids=_split_ids(tagged_member_ids),
        uploaded_by_email=uploaded_by_email,
        user=user,
        ip_address=client_ip(request),
    )

    return {
        "success": True,
        "message": "Image uploaded and awaiting review",
        "messageAr": "تم رفع الصورة وهي بانتظار المراجعة",
        "image": _image_out(image),
    }


# =====================================================================
# MODERATION
# =====================================================================

@router.get("/pending")
def get_pending_images(
    status: Optional[str] = None,
    category: Optional[str] = None,
    member_id: Optional[str] = Query(None, alias="memberId"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    include_stats: bool = Query(False, alias="includeStats"),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("approve_pending_members")),
):
    items, total = images.list_pending_images(
        db, status=status, category=category, member_id=member_id, limit=limit, offset=offset
    )

    response = {
        "success": True,
        "images": [_image_out(i) for i in items],
        "total": total,
        "limit": limit,
        "offset": offset,
        "hasMore": offset + len(items) < total,
    }
    if include_stats:
        response["stats"] = images.image_stats(db)
    return response


@router.get("/pending/{image_id}")
def get_pending_image(
    image_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("approve_pending_members")),
):
    return {"success": True, "image": _image_out(images.get_pending_image_or_404(db, image_id))}


@router.patch("/pending/{image_id}")
def review_pending_image(
    image_id: str,
    payload: ImageReview,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("approve_pending_members")),
):
    image = images.get_pending_image_or_404(db, image_id)
    result = images.review_image(db, image, payload, user)
    approved = isinstance(result, MemberPhoto)

    log_activity(
        db,
        action="IMAGE_APPROVED" if approved else "IMAGE_REJECTED",
        category="IMAGE",
        user=user,
        request=request,
        target_type="PENDING_IMAGE",
        target_id=image_id,
        target_name=image.title or image.uploaded_by_name,
        details={"reviewNotes": payload.review_notes},
    )

    if approved:
        return {
            "success": True,
            "message": "Image approved",
            "messageAr": "تمت الموافقة على الصورة",
            "photo": _photo_out(result),
        }

    return {
        "success": True,
        "message": "Image rejected",
        "messageAr": "تم رفض الصورة",
        "image": _image_out(result),
    }


@router.delete("/pending/{image_id}")
def remove_pending_image(
    image_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    images.delete_pending_image(db, images.get_pending_image_or_404(db, image_id))
    return {"success": True, "message": "Image deleted"}


# =====================================================================
# APPROVED PHOTOS
# =====================================================================

@router.get("/member/{member_id}")
def get_member_photos(member_id: str, category: Optional[str] = None, db: Session = Depends(get_db)):
    photos = images.member_photos(db, member_id, category)
    return {"success": True, "photos": [_photo_out(p) for p in photos], "total": len(photos)}


@router.get("/gallery")
def get_family_album(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    photos, total = images.family_album(db, limit=limit, offset=offset)
    return {
        "success": True,
        "photos": [_photo_out(p) for p in photos],
        "total": total,
        "hasMore": offset + len(photos) < total,
    }
