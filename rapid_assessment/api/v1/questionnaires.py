# rapid_assessment/api/v1/questionnaires.py
from fastapi import APIRouter, Depends, HTTPException, Query

from rapid_assessment.api.v1.auth import get_current_user
from rapid_assessment.core.exceptions import InvalidRequestError
from rapid_assessment.models.assessment import AssessmentType
from rapid_assessment.models.questionnaire import QuestionnaireActivation, QuestionnaireUpload
from rapid_assessment.repositories import questionnaires as questionnaire_repo
from rapid_assessment.services.questionnaire import get_active_questionnaire, initialize_default_questionnaires
from rapid_assessment.services.validation import validate_structure

router = APIRouter(prefix="/questionnaires", tags=["questionnaires"], dependencies=[Depends(get_current_user)])

@router.get("")
async def list_questionnaires_route():
    rows = await questionnaire_repo.list_versions()
    return {"items": rows, "count": len(rows)}

@router.post("", status_code=201)
async def store_questionnaire_route(payload: QuestionnaireUpload):
    structure = payload.model_dump(exclude={"active"})
    structure["assessment_type"] = payload.assessment_type.value
    if structure.get("total_questions") is None:
        structure["total_questions"] = sum(c.get("total_questions") or 0 for c in payload.categories)
    result = validate_structure(structure)
    if result["errors"]:
        raise InvalidRequestError(
            "Questionnaire structure is invalid",
            code="INVALID_QUESTIONNAIRE",
            details={"errors": result["errors"], "warnings": result["warnings"]},
        )
    doc = await questionnaire_repo.store_questionnaire(structure, active=payload.active)
    return {"questionnaire": doc, "warnings": result["warnings"]}

@router.post("/init")
async def init_questionnaires_route(force: bool = Query(False)):
    seeded = await initialize_default_questionnaires(force=force)
    return {"seeded": seeded}

@router.get("/{assessment_type}")
async def get_questionnaire_route(assessment_type: AssessmentType):
    return await get_active_questionnaire(assessment_type)

@router.get("/{assessment_type}/versions/{version}")
async def get_questionnaire_version_route(assessment_type: AssessmentType, version: str):
    doc = await questionnaire_repo.get_by_version(assessment_type.value, version)
    if not doc:
        raise HTTPException(status_code=404, detail="Questionnaire version not found")
    return doc

@router.patch("/{assessment_type}/versions/{version}")
async def activate_questionnaire_route(assessment_type: AssessmentType, version: str,
                                       payload: QuestionnaireActivation):
    doc = await questionnaire_repo.set_active(assessment_type.value, version, payload.active)
    if not doc:
        raise HTTPException(status_code=404, detail="Questionnaire version not found")
    return {k: v for k, v in doc.items() if k != "categories"}
