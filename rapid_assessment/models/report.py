# rapid_assessment/models/report.py
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ReportRequestStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ReportGenerate(BaseModel):
    assessment_id: str
    company_id: Optional[str] = None
    regenerate: bool = False


class ReportRequestCreate(BaseModel):
    assessment_id: str
    company_id: Optional[str] = None


class ReportListItem(BaseModel):
    id: str
    assessment_id: str
    company_id: str
    company_name: str
    assessment_name: str
    assessment_type: str
    generated_at: datetime
    generated_by: str


class ReportOut(ReportListItem):
    html_content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ReportRequestOut(BaseModel):
    id: str
    assessment_id: str
    company_id: str
    status: ReportRequestStatus
    requested_at: datetime
    completed_at: Optional[datetime] = None
    report_id: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
