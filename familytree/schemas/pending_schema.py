from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional, Literal
from datetime import datetime

from familytree.schemas.common import camel_config
from familytree.schemas.member_schema import PHONE_RE, Gender, MemberStatus


# --------------------------------------------------
# PUBLIC SUBMISSION
# --------------------------------------------------
class PendingMemberCreate(BaseModel):
    first_name: str
    father_name: Optional[str] = None
    grandfather_name: Optional[str] = None
    great_grandfather_name: Optional[str] = None
    family_name: Optional[str] = None
    proposed_father_id: Optional[str] = None
    gender: Gender
    birth_year: Optional[int] = None
    generation: int = 1
    branch: Optional[str] = None
    full_name_ar: Optional[str] = None
    full_name_en: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    status: MemberStatus = "Living"
    occupation: Optional[str] = None
    email: Optional[EmailStr] = None
    submitted_via: Optional[str] = None

    model_config = camel_config

    @field_validator("first_name")
    @classmethod
    def first_name_required(cls, v):
        if not v or not v.strip():
            raise ValueError("First name is required")
        return v

    @field_validator("generation")
    @classmethod
    def generation_in_range(cls, v):
        if v is not None and not 1 <= v <= 20:
            raise ValueError("Generation must be between 1 and 20")
        return v

    @field_validator("birth_year")
    @classmethod
    def birth_year_in_range(cls, v):
        if v is not None and (v < 1800 or v > datetime.utcnow().year):
            raise ValueError("Birth year must be between 1800 and the current year")
        return v

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v):
        if v in (None, ""):
            return None
        if not PHONE_RE.match(v):
            raise ValueError("Invalid phone number")
        return v

    @field_validator("email", "proposed_father_id", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return None if v == "" else v


# --------------------------------------------------
# REVIEW
# --------------------------------------------------
class PendingReview(BaseModel):
    action: Optional[str] = None
    review_note: Optional[str] = None

    model_config = camel_config


class PendingMemberOut(BaseModel):
    id: str
    first_name: str
    father_name: Optional[str] = None
    grandfather_name: Optional[str] = None
    great_grandfather_name: Optional[str] = None
    family_name: str
    proposed_father_id: Optional[str] = None
    gender: str
    birth_year: Optional[int] = None
    generation: int
    branch: Optional[str] = None
    full_name_ar: Optional[str] = None
    full_name_en: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    status: str
    occupation: Optional[str] = None
    email: Optional[str] = None
    submitted_via: Optional[str] = None
    submitted_at: datetime
    review_status: Literal["PENDING", "APPROVED", "REJECTED"]
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_note: Optional[str] = None
    approved_member_id: Optional[str] = None

    model_config = camel_config
