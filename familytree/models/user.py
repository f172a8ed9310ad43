import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime

from familytree.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)

    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    name_arabic = Column(String, nullable=False)
    name_english = Column(String, nullable=True)

    role = Column(String, nullable=False, default="MEMBER")  # SUPER_ADMIN / ADMIN / BRANCH_LEADER / MEMBER / GUEST
    status = Column(String, nullable=False, default="PENDING")  # PENDING / ACTIVE / DISABLED

    linked_member_id = Column(String, nullable=True)
    assigned_branch = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    last_login_at = Column(DateTime, nullable=True)
