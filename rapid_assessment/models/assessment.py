# rapid_assessment/models/assessment.py
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 100


class AssessmentType(str, Enum):
    EXPLORATORY = "EXPLORATORY"
    MIGRATION = "MIGRATION"


class AssessmentStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class CompletionStatus(str, Enum):
    NOT_STARTED = "not_started"
    PARTIAL = "partial"
    COMPLETED = "completed"


def _clean_name(value: str) -> str:
    value = (value or "").strip()
    if len(value) < NAME_MIN_LENGTH:
        raise ValueError(f"Assessment name must be at least {NAME_MIN_LENGTH} characters long")
    if len(value) > NAME_MAX_LENGTH:
        raise ValueError(f"Assessment name must be less than {NAME_MAX_LENGTH} characters")
    return value


class AssessmentCreate(BaseModel):
    name: str
    company_id: str
    type: AssessmentType

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        return _clean_name(v)


class AssessmentUpdate(BaseModel):
    name: Optional[str] = None
    current_category: Optional[str] = None
    current_subcategory: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        return None if v is None else _clean_name(v)


class CategoryStatusEntry(BaseModel):
    status: CompletionStatus = CompletionStatus.NOT_STARTED
    completion_percentage: int = 0
    last_modified: Optional[datetime] = None


class ResponsesUpdate(BaseModel):
    """Auto-save payload: one category's full response map."""
    category_id: str
    responses: Dict[str, Any] = Field(default_factory=dict)
    current_category: Optional[str] = None
    current_subcategory: Optional[str] = None
    # accepted for client compatibility; the server recomputes statuses
    category_status: Optional[Dict[str, Any]] = None


class ValidationRequest(BaseModel):
    validation_type: Literal["category", "responses", "completion", "questionnaire"]
    category_id: Optional[str] = None


class AssessmentOut(BaseModel):
    id: str
    name: str
    company_id: str
    type: AssessmentType
    status: AssessmentStatus
    current_category: Optional[str] = None
    current_subcategory: Optional[str] = None
    total_categories: int = 0
    responses: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    category_statuses: Dict[str, CategoryStatusEntry] = Field(default_factory=dict)
    rapid_questionnaire_version: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
