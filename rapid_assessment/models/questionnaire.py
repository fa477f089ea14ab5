# rapid_assessment/models/questionnaire.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from rapid_assessment.models.assessment import AssessmentType

QUESTION_TYPES = ("text", "textarea", "select", "radio", "checkbox", "number")
OPTION_QUESTION_TYPES = ("select", "radio", "checkbox")

USE_CASE_DISCOVERY = "use-case-discovery"
CURRENT_SYSTEM_ASSESSMENT = "current-system-assessment"
DATA_READINESS = "data-readiness"
COMPLIANCE_INTEGRATION = "compliance-integration"
MODEL_EVALUATION = "model-evaluation"
BUSINESS_VALUE_ROI = "business-value-roi"

RAPID_CATEGORY_IDS = (
    USE_CASE_DISCOVERY,
    CURRENT_SYSTEM_ASSESSMENT,
    DATA_READINESS,
    COMPLIANCE_INTEGRATION,
    MODEL_EVALUATION,
    BUSINESS_VALUE_ROI,
)

# category counts of the shipped v3.0 paths
EXPECTED_CATEGORY_COUNTS = {
    AssessmentType.EXPLORATORY.value: 4,
    AssessmentType.MIGRATION.value: 5,
}


class QuestionnaireUpload(BaseModel):
    """
    Admin payload for storing a questionnaire version. Categories are kept as
    raw dicts so structural problems are reported by the validator instead of
    being rejected by pydantic.
    """
    version: str
    assessment_type: AssessmentType
    categories: List[Dict[str, Any]] = Field(default_factory=list)
    total_questions: Optional[int] = None
    last_updated: Optional[str] = None
    active: bool = True


class QuestionnaireActivation(BaseModel):
    active: bool
