from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from loguru import logger
from sqlalchemy.orm import Session
import bcrypt

from familytree.config import settings
from familytree.core.permissions import has_permission
from familytree.database import get_db
from familytree.errors import ApiError
from familytree.models.user import User


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


# ============================================================
# PASSWORD HELPERS
# ============================================================

def hash_password(password: str) -> str:
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.checkpw(password_bytes, hashed.encode())


# ============================================================
# REGISTER USER
# ============================================================

def register_user(
    db: Session,
    email: str,
    password: str,
    name_arabic: str,
    name_english: Optional[str] = None,
) -> User:
    """
    New accounts wait for an admin (status PENDING, role MEMBER).
    The very first account bootstraps the site as an active SUPER_ADMIN.
    """
    email = email.lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise ValueError("Email already exists")

    first_user = db.query(User).count() == 0

    user = User(
        id=str(uuid4()),
        email=email,
        hashed_password=hash_password(password),
        name_arabic=name_arabic,
        name_english=name_english,
        role="SUPER_ADMIN" if first_user else "MEMBER",
        status="ACTIVE" if first_user else "PENDING",
    )

    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.email} as {user.role} ({user.status})")
    return user


# ============================================================
# LOGIN
# ============================================================

def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ============================================================
# TOKEN CREATION
# ============================================================

def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


# ============================================================
# CURRENT USER
# ============================================================

def _unauthorized(message: str = "Unauthorized") -> ApiError:
    return ApiError(401, message, "غير مصرح", headers={"WWW-Authenticate": "Bearer"})


def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    The user behind a valid bearer token, or None for anonymous requests.
    """
    if not token:
        return None

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str = payload.get("sub")
    except JWTError:
        raise _unauthorized("Invalid token")

    if user_id is None:
        raise _unauthorized("Invalid token")

    # If the users table was wiped the token is stale → 401, not a crash
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise _unauthorized("User not found")

    if user.status != "ACTIVE":
        raise ApiError(403, "Account is not active", "الحساب غير مفعل")

    return user


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise _unauthorized()
    return user


# ============================================================
# ROLE / PERMISSION GUARDS
# ============================================================

def require_permission(permission: str):
    def dependency(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user.role, permission):
            raise ApiError(403, "Forbidden", "غير مسموح لك بهذا الإجراء")
        return user

    return dependency


def require_roles(*roles: str):
    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise ApiError(403, "Forbidden", "غير مسموح لك بهذا الإجراء")
        return user

    return dependency
