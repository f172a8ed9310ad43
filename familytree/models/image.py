from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from familytree.database import Base
import uuid


class PendingImage(Base):
    """
    Uploaded photo waiting for moderation.
    """
    __tablename__ = "pending_images"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # File info
    file_path = Column(String, nullable=False)
    thumbnail_path = Column(String, nullable=True)
    content_type = Column(String, nullable=True)
    file_size = Column(Integer, nullable=False, default=0)

    category = Column(String, nullable=False, default="memory")  # profile / memory / document / historical
    title = Column(String, nullable=True)
    title_ar = Column(String, nullable=True)
    caption = Column(String, nullable=True)
    caption_ar = Column(String, nullable=True)
    year = Column(Integer, nullable=True)

    member_id = Column(String, nullable=True, index=True)
    member_name = Column(String, nullable=True)
    tagged_member_ids = Column(Text, nullable=True)  # JSON array

    uploaded_by = Column(String, nullable=True)
    uploaded_by_name = Column(String, nullable=False)
    uploaded_by_email = Column(String, nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, index=True)
    ip_address = Column(String, nullable=True)

    review_status = Column(String, nullable=False, default="PENDING", index=True)  # PENDING / APPROVED / REJECTED
    reviewed_by = Column(String, nullable=True)
    reviewed_by_name = Column(String, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(String, nullable=True)
    approved_photo_id = Column(String, nullable=True)


class MemberPhoto(Base):
    """
    Approved photo, attached to a member or to the family album.
    """
    __tablename__ = "member_photos"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    file_path = Column(String, nullable=False)
    thumbnail_path = Column(String, nullable=True)

    category = Column(String, nullable=False, default="memory")
    title = Column(String, nullable=True)
    title_ar = Column(String, nullable=True)
    caption = Column(String, nullable=True)
    caption_ar = Column(String, nullable=True)
    year = Column(Integer, nullable=True)

    member_id = Column(String, nullable=True, index=True)
    tagged_member_ids = Column(Text, nullable=True)

    is_family_album = Column(Boolean, default=False)
    is_profile_photo = Column(Boolean, default=False)
    is_public = Column(Boolean, default=True)
    display_order = Column(Integer, nullable=False, default=0)

    uploaded_by = Column(String, nullable=True)
    uploaded_by_name = Column(String, nullable=False)

    original_pending_id = Column(
        String,
        ForeignKey("pending_images.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    original_pending = relationship("PendingImage", foreign_keys=[original_pending_id])
