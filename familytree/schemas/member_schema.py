import re
from datetime import datetime
from typing import Optional, Literal

from pydantic import BaseModel, EmailStr, field_validator

from familytree.schemas.common import camel_config

PHONE_RE = re.compile(r"^[+]?[\d\s\-()]{7,}$")
MIN_BIRTH_YEAR = 1800

Gender = Literal["Male", "Female"]
MemberStatus = Literal["Living", "Deceased"]


# --------------------------------------------------
# SHARED FIELD RULES
# --------------------------------------------------
class _MemberFields(BaseModel):
    first_name: Optional[str] = None
    father_name: Optional[str] = None
    grandfather_name: Optional[str] = None
    great_grandfather_name: Optional[str] = None
    family_name: Optional[str] = None
    father_id: Optional[str] = None
    gender: Optional[Gender] = None
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    generation: Optional[int] = None
    branch: Optional[str] = None
    full_name_ar: Optional[str] = None
    full_name_en: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    status: Optional[MemberStatus] = None
    photo_url: Optional[str] = None
    biography: Optional[str] = None
    occupation: Optional[str] = None
    email: Optional[EmailStr] = None

    model_config = camel_config

    @field_validator("birth_year", "death_year")
    @classmethod
    def year_in_range(cls, v):
        if v is None:
            return v
        if v < MIN_BIRTH_YEAR or v > datetime.utcnow().year:
            raise ValueError(f"Year must be between {MIN_BIRTH_YEAR} and the current year")
        return v

    @field_validator("generation")
    @classmethod
    def generation_in_range(cls, v):
        if v is not None and not 1 <= v <= 20:
            raise ValueError("Generation must be between 1 and 20")
        return v

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v):
        if v in (None, ""):
            return None
        if not PHONE_RE.match(v):
            raise ValueError("Invalid phone number")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        return None if v == "" else v

    @field_validator("father_id", mode="before")
    @classmethod
    def blank_father_is_none(cls, v):
        return None if v == "" else v


# --------------------------------------------------
# CREATE
# --------------------------------------------------
class MemberCreate(_MemberFields):
    first_name: str
    gender: Gender
    status: MemberStatus = "Living"

    @field_validator("first_name")
    @classmethod
    def first_name_required(cls, v):
        if not v or not v.strip():
            raise ValueError("First name is required")
        return v.strip()


# --------------------------------------------------
# UPDATE
# --------------------------------------------------
class MemberUpdate(_MemberFields):
    # When present the write fails if the stored version moved on
    expected_version: Optional[int] = None

    @field_validator("first_name", "gender", "family_name", "status", "generation")
    @classmethod
    def not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        return v

    @field_validator("first_name")
    @classmethod
    def first_name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("First name is required")
        return v.strip()


# --------------------------------------------------
# OUTPUT
# --------------------------------------------------
class MemberOut(BaseModel):
    id: str
    first_name: str
    father_name: Optional[str] = None
    grandfather_name: Optional[str] = None
    great_grandfather_name: Optional[str] = None
    family_name: str
    father_id: Optional[str] = None
    gender: str
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    sons_count: int = 0
    daughters_count: int = 0
    generation: int
    branch: Optional[str] = None
    full_name_ar: Optional[str] = None
    full_name_en: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    status: str
    photo_url: Optional[str] = None
    biography: Optional[str] = None
    occupation: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    last_modified_by: Optional[str] = None
    version: int = 1

    model_config = camel_config


def member_to_dict(member) -> dict:
    """Serialize an ORM member (or a fallback dict) to its camelCase JSON shape."""
    return MemberOut.model_validate(member).model_dump(by_alias=True, mode="json")
