from pydantic import BaseModel, field_serializer
from typing import Optional
from datetime import datetime
import json

from familytree.schemas.common import camel_config


class ActivityLogOut(BaseModel):
    id: str
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    action: str
    category: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    details: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool = True
    error_message: Optional[str] = None
    created_at: datetime

    # Stored as JSON text, returned as an object
    @field_serializer("details")
    def parse_details(self, v):
        if not v:
            return None
        try:
            return json.loads(v)
        except ValueError:
            return v

    model_config = camel_config
