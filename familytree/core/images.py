import json
from datetime import datetime
from typing import Optional

from fastapi import UploadFile
from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from familytree import storage
from familytree.errors import ApiError
from familytree.models.image import MemberPhoto, PendingImage
from familytree.models.user import User
from familytree.schemas.image_schema import IMAGE_CATEGORIES, REVIEW_STATUSES, ImageReview
from familytree.utils.sanitize import sanitize_string

MIN_PHOTO_YEAR = 1800


# ============================================================
# UPLOAD
# ============================================================

def upload_image(
    db: Session,
    file: UploadFile,
    *,
    uploaded_by_name: Optional[str],
    category: Optional[str] = None,
    title: Optional[str] = None,
    title_ar: Optional[str] = None,
    caption: Optional[str] = None,
    caption_ar: Optional[str] = None,
    year: Optional[int] = None,
    member_id: Optional[str] = None,
    member_name: Optional[str] = None,
    tagged_member_ids: Optional[list[str]] = None,
    uploaded_by_email: Optional[str] = None,
    user: Optional[User] = None,
    ip_address: Optional[str] = None,
) -> PendingImage:
    uploaded_by_name = sanitize_string(uploaded_by_name)
    if not uploaded_by_name:
        raise ApiError(400, "Uploader name is required", "اسم المُحمّل مطلوب")

    category = category or "memory"
    if category not in IMAGE_CATEGORIES:
        raise ApiError(
            400,
            f"Invalid category. Must be one of: {', '.join(IMAGE_CATEGORIES)}",
            "تصنيف غير صالح",
        )

    if year is not None and not MIN_PHOTO_YEAR <= year <= datetime.utcnow().year:
        raise ApiError(400, f"Year must be between {MIN_PHOTO_YEAR} and {datetime.utcnow().year}", "السنة غير صالحة")

    ok, error = storage.validate_image(file)
    if not ok:
        raise ApiError(400, error, "صورة غير صالحة")

    size = storage.file_size(file)
    path = storage.save_file("pending-images", file)

    image = PendingImage(
        file_path=path,
        content_type=file.content_type,
        file_size=size,
        category=category,
        title=sanitize_string(title),
        title_ar=sanitize_string(title_ar),
        caption=sanitize_string(caption),
        caption_ar=sanitize_string(caption_ar),
        year=year,
        member_id=member_id or None,
        member_name=sanitize_string(member_name),
        tagged_member_ids=json.dumps(tagged_member_ids) if tagged_member_ids else None,
        uploaded_by=user.id if user else None,
        uploaded_by_name=uploaded_by_name,
        uploaded_by_email=uploaded_by_email or (user.email if user else None),
        ip_address=ip_address,
    )
    db.add(image)
    db.commit()
    db.refresh(image)

    logger.info(f"Image {image.id} uploaded by {uploaded_by_name} ({size} bytes)")
    return image


# ============================================================
# MODERATION QUEUE
# ============================================================

def list_pending_images(
    db: Session,
    status: Optional[str] = None,
    category: Optional[str] = None,
    member_id: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[PendingImage], int]:
    if status and status not in REVIEW_STATUSES:
        raise ApiError(400, "Invalid status", "حالة غير صالحة")

    q = db.query(PendingImage)
    if status:
        q = q.filter(PendingImage.review_status == status)
    if category:
        q = q.filter(PendingImage.category == category)
    if member_id:
        q = q.filter(PendingImage.member_id == member_id)

    total = q.count()
    images = q.order_by(PendingImage.uploaded_at.desc()).offset(offset).limit(limit).all()
    return images, total


def image_stats(db: Session) -> dict:
    by_status = dict(
        db.query(PendingImage.review_status, func.count(PendingImage.id))
        .group_by(PendingImage.review_status)
        .all()
    )
    by_category = (
        db.query(MemberPhoto.category, func.count(MemberPhoto.id))
        .group_by(MemberPhoto.category)
        .all()
    )

    return {
        "pendingCount": by_status.get("PENDING", 0),
        "approvedCount": by_status.get("APPROVED", 0),
        "rejectedCount": by_status.get("REJECTED", 0),
        "totalPhotos": db.query(MemberPhoto).count(),
        "familyAlbumCount": db.query(MemberPhoto).filter(MemberPhoto.is_family_album.is_(True)).count(),
        "byCategory": [{"category": c, "count": n} for c, n in by_category],
    }


def get_pending_image_or_404(db: Session, image_id: str) -> PendingImage:
    image = db.get(PendingImage, image_id)
    if not image:
        raise ApiError(404, "Pending image not found", "الصورة المعلقة غير موجودة")
    return image


def review_image(db: Session, image: PendingImage, review: ImageReview, user: User):
    """
    Approve → returns the new MemberPhoto. Reject → returns the updated PendingImage.
    """
    if review.action not in ("approve", "reject"):
        raise ApiError(400, 'Invalid action. Must be "approve" or "reject"', "إجراء غير صالح")

    reviewed_by = review.reviewed_by or user.id
    reviewed_by_name = review.reviewed_by_name or user.name_arabic
    if not reviewed_by or not reviewed_by_name:
        raise ApiError(400, "Reviewer information is required", "معلومات المراجع مطلوبة")

    if image.review_status != "PENDING":
        raise ApiError(400, "This image has already been reviewed", "تمت مراجعة هذه الصورة بالفعل")

    if review.action == "reject" and not review.review_notes:
        raise ApiError(400, "Review notes are required when rejecting", "ملاحظات المراجعة مطلوبة عند الرفض")

    image.reviewed_by = reviewed_by
    image.reviewed_by_name = reviewed_by_name
    image.reviewed_at = datetime.utcnow()
    image.review_notes = review.review_notes

    if review.action == "reject":
        image.review_status = "REJECTED"
        db.commit()
        db.refresh(image)
        logger.info(f"Image {image.id} rejected by {reviewed_by_name}")
        return image

    photo = MemberPhoto(
        file_path=image.file_path,
        thumbnail_path=image.thumbnail_path,
        category=image.category,
        title=image.title,
        title_ar=image.title_ar,
        caption=image.caption,
        caption_ar=image.caption_ar,
        year=image.year,
        member_id=image.member_id,
        tagged_member_ids=image.tagged_member_ids,
        is_family_album=not image.member_id,
        is_profile_photo=image.category == "profile",
        is_public=True,
        display_order=0,
        uploaded_by=image.uploaded_by,
        uploaded_by_name=image.uploaded_by_name,
        original_pending_id=image.id,
    )
    db.add(photo)
    db.flush()

    image.review_status = "APPROVED"
    image.approved_photo_id = photo.id
    db.commit()
    db.refresh(photo)

    logger.info(f"Image {image.id} approved by {reviewed_by_name} as photo {photo.id}")
    return photo


def delete_pending_image(db: Session, image: PendingImage) -> None:
    # Approved photos keep pointing at the same file
    keep_file = image.approved_photo_id is not None
    path = image.file_path

    db.query(MemberPhoto).filter(MemberPhoto.original_pending_id == image.id).update(
        {MemberPhoto.original_pending_id: None}, synchronize_session="fetch"
    )
    db.delete(image)
    db.commit()

    if not keep_file:
        storage.delete_file(path)


# ============================================================
# APPROVED PHOTOS
# ============================================================

def member_photos(db: Session, member_id: str, category: Optional[str] = None) -> list[MemberPhoto]:
    q = db.query(MemberPhoto).filter(MemberPhoto.member_id == member_id, MemberPhoto.is_public.is_(True))
    if category:
        q = q.filter(MemberPhoto.category == category)
    return q.order_by(MemberPhoto.is_profile_photo.desc(), MemberPhoto.display_order, MemberPhoto.created_at.desc()).all()


def family_album(db: Session, limit: int = 50, offset: int = 0) -> tuple[list[MemberPhoto], int]:
    q = db.query(MemberPhoto).filter(MemberPhoto.is_family_album.is_(True), MemberPhoto.is_public.is_(True))
    total = q.count()
    photos = q.order_by(MemberPhoto.year.desc(), MemberPhoto.created_at.desc()).offset(offset).limit(limit).all()
    return photos, total
