from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from familytree.database import Base
from familytree.config import settings


class FamilyMember(Base):
    """
    One person in the family tree.
    Ids look like P001, P002 ... and are allocated by the member store.
    """
    __tablename__ = "family_members"

    id = Column(String, primary_key=True, index=True)

    # -------------------------------------------------------
    # NAME / LINEAGE
    # -------------------------------------------------------
    first_name = Column(String, nullable=False)
    father_name = Column(String, nullable=True)
    grandfather_name = Column(String, nullable=True)
    great_grandfather_name = Column(String, nullable=True)
    family_name = Column(String, nullable=False, default=settings.DEFAULT_FAMILY_NAME)

    father_id = Column(String, ForeignKey("family_members.id"), nullable=True, index=True)

    gender = Column(String, nullable=False)  # Male / Female
    birth_year = Column(Integer, nullable=True)
    death_year = Column(Integer, nullable=True)

    sons_count = Column(Integer, nullable=False, default=0)
    daughters_count = Column(Integer, nullable=False, default=0)

    generation = Column(Integer, nullable=False, default=1, index=True)
    branch = Column(String, nullable=True, index=True)

    full_name_ar = Column(String, nullable=True)
    full_name_en = Column(String, nullable=True)

    # -------------------------------------------------------
    # CONTACT / PROFILE
    # -------------------------------------------------------
    phone = Column(String, nullable=True)
    city = Column(String, nullable=True)
    status = Column(String, nullable=False, default="Living")  # Living / Deceased
    photo_url = Column(String, nullable=True)
    biography = Column(Text, nullable=True)
    occupation = Column(String, nullable=True)
    email = Column(String, nullable=True)

    # -------------------------------------------------------
    # AUDIT
    # -------------------------------------------------------
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_by = Column(String, nullable=True, default="system")
    last_modified_by = Column(String, nullable=True)

    # Optimistic locking counter, bumped on every write
    version = Column(Integer, nullable=False, default=1)

    father = relationship("FamilyMember", remote_side=[id], foreign_keys=[father_id])
