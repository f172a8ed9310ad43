from sqlalchemy import Column, String, Integer, DateTime, Text
from datetime import datetime
from familytree.database import Base
import uuid


class Snapshot(Base):
    """
    Full point-in-time copy of the member table, stored as JSON text.
    """
    __tablename__ = "snapshots"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)

    tree_data = Column(Text, nullable=False)
    member_count = Column(Integer, nullable=False, default=0)

    created_by = Column(String, nullable=False)
    created_by_name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    snapshot_type = Column(String, nullable=False, default="MANUAL")  # MANUAL / AUTO_BACKUP / PRE_IMPORT / PRE_RESTORE
