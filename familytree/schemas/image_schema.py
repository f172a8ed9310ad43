# familytree/schemas/image_schema.py

from pydantic import BaseModel, field_serializer
from datetime import datetime
from typing import Optional

from familytree.schemas.common import camel_config
from familytree.utils.urls import absolute_media_url

IMAGE_CATEGORIES = ("profile", "memory", "document", "historical")
REVIEW_STATUSES = ("PENDING", "APPROVED", "REJECTED")


# -----------------------------------------------------
# PENDING IMAGE
# -----------------------------------------------------
class PendingImageOut(BaseModel):
    id: str
    file_path: str
    thumbnail_path: Optional[str] = None
    content_type: Optional[str] = None
    file_size: int = 0
    category: str
    title: Optional[str] = None
    title_ar: Optional[str] = None
    caption: Optional[str] = None
    caption_ar: Optional[str] = None
    year: Optional[int] = None
    member_id: Optional[str] = None
    member_name: Optional[str] = None
    tagged_member_ids: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_by_name: str
    uploaded_by_email: Optional[str] = None
    uploaded_at: datetime
    review_status: str
    reviewed_by: Optional[str] = None
    reviewed_by_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    approved_photo_id: Optional[str] = None

    @field_serializer("file_path", "thumbnail_path")
    def absolutise_urls(self, v):
        return absolute_media_url(v)

    model_config = camel_config


# -----------------------------------------------------
# APPROVED PHOTO
# -----------------------------------------------------
class MemberPhotoOut(BaseModel):
    id: str
    file_path: str
    thumbnail_path: Optional[str] = None
    category: str
    title: Optional[str] = None
    title_ar: Optional[str] = None
    caption: Optional[str] = None
    caption_ar: Optional[str] = None
    year: Optional[int] = None
    member_id: Optional[str] = None
    is_family_album: bool
    is_profile_photo: bool
    is_public: bool
    display_order: int
    uploaded_by_name: str
    original_pending_id: Optional[str] = None
    created_at: datetime

    @field_serializer("file_path", "thumbnail_path")
    def absolutise_urls(self, v):
        return absolute_media_url(v)

    model_config = camel_config


# -----------------------------------------------------
# REVIEW
# -----------------------------------------------------
class ImageReview(BaseModel):
    action: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_by_name: Optional[str] = None
    review_notes: Optional[str] = None

    model_config = camel_config
