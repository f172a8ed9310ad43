from sqlalchemy import Column, String, Integer, Boolean, DateTime
from datetime import datetime
from familytree.database import Base
import uuid


class BranchEntryLink(Base):
    """
    Shareable link that lets a branch submit pending members without an account.
    """
    __tablename__ = "branch_entry_links"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String, unique=True, nullable=False, index=True)

    branch_name = Column(String, nullable=True)
    branch_head_id = Column(String, nullable=False, index=True)
    branch_head_name = Column(String, nullable=False)

    is_active = Column(Boolean, default=True)
    expires_at = Column(DateTime, nullable=True)
    max_uses = Column(Integer, nullable=True)
    use_count = Column(Integer, nullable=False, default=0)

    created_by = Column(String, nullable=False, default="admin")
    created_at = Column(DateTime, default=datetime.utcnow)
