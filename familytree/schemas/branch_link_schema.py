from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from familytree.schemas.common import camel_config
from familytree.schemas.pending_schema import PendingMemberCreate


class BranchLinkCreate(BaseModel):
    branch_head_id: str
    branch_head_name: Optional[str] = None
    branch_name: Optional[str] = None
    token: Optional[str] = None
    is_active: bool = True
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None

    model_config = camel_config


class BranchLinkUpdate(BaseModel):
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None

    model_config = camel_config


class BranchLinkOut(BaseModel):
    id: str
    token: str
    branch_name: Optional[str] = None
    branch_head_id: str
    branch_head_name: str
    is_active: bool
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    use_count: int
    created_by: str
    created_at: datetime

    model_config = camel_config


class BranchEntrySubmit(PendingMemberCreate):
    # Taken from the branch head when omitted
    generation: Optional[int] = None
