from sqlalchemy import Column, String, Integer, DateTime
from datetime import datetime
from familytree.database import Base
import uuid


class PendingMember(Base):
    __tablename__ = "pending_members"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    first_name = Column(String, nullable=False)
    father_name = Column(String, nullable=True)
    grandfather_name = Column(String, nullable=True)
    great_grandfather_name = Column(String, nullable=True)
    family_name = Column(String, nullable=False)

    # Not a FK: the proposed father is only checked when the submission is approved
    proposed_father_id = Column(String, nullable=True)

    gender = Column(String, nullable=False)
    birth_year = Column(Integer, nullable=True)
    generation = Column(Integer, nullable=False, default=1)
    branch = Column(String, nullable=True, index=True)
    full_name_ar = Column(String, nullable=True)
    full_name_en = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    city = Column(String, nullable=True)
    status = Column(String, nullable=False, default="Living")
    occupation = Column(String, nullable=True)
    email = Column(String, nullable=True)

    submitted_via = Column(String, nullable=True)  # branch entry token
    submitted_at = Column(DateTime, default=datetime.utcnow, index=True)

    review_status = Column(String, nullable=False, default="PENDING", index=True)  # PENDING / APPROVED / REJECTED
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_note = Column(String, nullable=True)
    approved_member_id = Column(String, nullable=True)
