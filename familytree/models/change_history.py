from sqlalchemy import Column, String, DateTime, Text
from datetime import datetime
from familytree.database import Base
import uuid


class ChangeHistory(Base):
    __tablename__ = "change_history"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # No FK: history must outlive deleted members
    member_id = Column(String, nullable=False, index=True)

    field_name = Column(String, nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)

    change_type = Column(String, nullable=False, index=True)  # CREATE / UPDATE / DELETE / PARENT_CHANGE / RESTORE

    changed_by = Column(String, nullable=False, default="admin")
    changed_by_name = Column(String, nullable=False, default="المدير")
    changed_at = Column(DateTime, default=datetime.utcnow, index=True)

    batch_id = Column(String, nullable=True, index=True)
    full_snapshot = Column(Text, nullable=True)
    reason = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
