import json
from typing import Optional

from fastapi import Request
from loguru import logger
from sqlalchemy.orm import Session

from familytree.core.rate_limit import client_ip
from familytree.models.activity_log import ActivityLog
from familytree.models.user import User


def log_activity(
    db: Session,
    *,
    action: str,
    category: str,
    user: Optional[User] = None,
    request: Optional[Request] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    target_name: Optional[str] = None,
    details: Optional[dict] = None,
    success: bool = True,
    error_message: Optional[str] = None,
    commit: bool = True,
) -> ActivityLog:
    entry = ActivityLog(
        user_id=user.id if user else None,
        user_email=user.email if user else None,
        user_name=user.name_arabic if user else None,
        action=action,
        category=category,
        target_type=target_type,
        target_id=target_id,
        target_name=target_name,
        details=json.dumps(details, ensure_ascii=False, default=str) if details is not None else None,
        ip_address=client_ip(request) if request else None,
        user_agent=request.headers.get("user-agent") if request else None,
        success=success,
        error_message=error_message,
    )
    db.add(entry)
    if commit:
        db.commit()

    logger.info(f"[{category}] {action} {target_type or ''} {target_id or ''} by {entry.user_email or 'anonymous'}")
    return entry
