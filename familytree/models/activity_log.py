from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey
from datetime import datetime
from familytree.database import Base
import uuid


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    user_email = Column(String, nullable=True)
    user_name = Column(String, nullable=True)

    action = Column(String, nullable=False, index=True)
    category = Column(String, nullable=False, index=True)  # MEMBER / DATA / SETTINGS / IMAGE

    target_type = Column(String, nullable=True)
    target_id = Column(String, nullable=True)
    target_name = Column(String, nullable=True)

    details = Column(Text, nullable=True)  # JSON
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)

    success = Column(Boolean, default=True)
    error_message = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
