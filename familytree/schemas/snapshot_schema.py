from pydantic import BaseModel
from typing import Optional, Literal
from datetime import datetime

from familytree.schemas.common import camel_config


class SnapshotCreate(BaseModel):
    name: str
    description: Optional[str] = None
    snapshot_type: Literal["MANUAL", "AUTO_BACKUP", "PRE_IMPORT"] = "MANUAL"

    model_config = camel_config


class SnapshotOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    member_count: int
    created_by: str
    created_by_name: str
    created_at: datetime
    snapshot_type: str

    model_config = camel_config


class SnapshotDetailOut(SnapshotOut):
    tree_data: str


class SnapshotAction(BaseModel):
    # Validated by the handler so a bad value yields the bilingual 400
    action: Optional[str] = None
