from pydantic import BaseModel
from typing import Optional, Literal
from datetime import datetime

from familytree.schemas.common import camel_config

ChangeType = Literal["CREATE", "UPDATE", "DELETE", "PARENT_CHANGE", "RESTORE"]


class ChangeHistoryCreate(BaseModel):
    member_id: str
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    change_type: ChangeType
    changed_by: Optional[str] = None
    changed_by_name: Optional[str] = None
    batch_id: Optional[str] = None
    reason: Optional[str] = None
    full_snapshot: Optional[str] = None

    model_config = camel_config


class ChangeHistoryOut(BaseModel):
    id: str
    member_id: str
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    change_type: str
    changed_by: str
    changed_by_name: str
    changed_at: datetime
    batch_id: Optional[str] = None
    full_snapshot: Optional[str] = None
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    member_name: Optional[str] = None

    model_config = camel_config


RollbackType = Literal["SINGLE_CHANGE", "BATCH", "FULL_SNAPSHOT"]


class RollbackRequest(BaseModel):
    rollback_type: RollbackType = "SINGLE_CHANGE"
    change_id: Optional[str] = None
    batch_id: Optional[str] = None
    member_id: Optional[str] = None
    reason: Optional[str] = None

    model_config = camel_config
