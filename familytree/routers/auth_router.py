from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from familytree.auth import (
    authenticate_user,
    create_access_token,
    get_current_user,
    register_user,
)
from familytree.core.permissions import DEFAULT_PERMISSION_MATRIX, get_assignable_roles
from familytree.database import get_db
from familytree.errors import ApiError
from familytree.models.user import User
from familytree.schemas.common import camel_config

router = APIRouter(prefix="/auth", tags=["Authentication"])

MIN_PASSWORD_LENGTH = 8


# ---------- Pydantic request models ----------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name_arabic: str
    name_english: Optional[str] = None

    model_config = camel_config


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "nameArabic": user.name_arabic,
        "nameEnglish": user.name_english,
        "role": user.role,
        "status": user.status,
        "assignedBranch": user.assigned_branch,
        "linkedMemberId": user.linked_member_id,
    }


# ----------------- REGISTER ------------------

@router.post("/register")
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ApiError(
            400,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            "كلمة المرور يجب أن تكون 8 أحرف على الأقل",
        )

    try:
        user = register_user(
            db,
            email=payload.email,
            password=payload.password,
            name_arabic=payload.name_arabic,
            name_english=payload.name_english,
        )
    except ValueError as e:
        raise ApiError(400, str(e), "البريد الإلكتروني مستخدم مسبقاً")

    return {
        "success": True,
        "message": "Registration successful",
        "user": user_to_dict(user),
    }


# ------------------- LOGIN -------------------

@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, email=payload.email, password=payload.password)

    if not user:
        raise ApiError(401, "Incorrect email or password", "البريد الإلكتروني أو كلمة المرور غير صحيحة")

    if user.status != "ACTIVE":
        raise ApiError(403, "Account is not active", "الحساب غير مفعل")

    user.last_login_at = datetime.utcnow()
    db.commit()

    token = create_access_token({"sub": user.id})

    return {
        "access_token": token,
        "token_type": "bearer",
    }


# -------------------- ME ---------------------

@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    return {
        **user_to_dict(current_user),
        "permissions": DEFAULT_PERMISSION_MATRIX.get(current_user.role, {}),
        "assignableRoles": get_assignable_roles(current_user.role),
    }
