# rapid_assessment/models/company.py
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-_&.()]+$")


def _clean_name(value: str) -> str:
    value = (value or "").strip()
    if len(value) < NAME_MIN_LENGTH:
        raise ValueError(f"Company name must be at least {NAME_MIN_LENGTH} characters long")
    if len(value) > NAME_MAX_LENGTH:
        raise ValueError(f"Company name must be less than {NAME_MAX_LENGTH} characters")
    if not _NAME_PATTERN.match(value):
        raise ValueError("Company name contains invalid characters")
    return value


def _clean_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if len(value) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"Description must be less than {DESCRIPTION_MAX_LENGTH} characters")
    return value or None


class CompanyCreate(BaseModel):
    name: str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        return _clean_name(v)

    @field_validator("description")
    @classmethod
    def _description(cls, v):
        return _clean_description(v)


class CompanyUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        return None if v is None else _clean_name(v)

    @field_validator("description")
    @classmethod
    def _description(cls, v):
        return _clean_description(v)


class CompanyOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    assessment_count: int = 0
    created_at: datetime
    updated_at: datetime
