# rapid_assessment/api/v1/assessments.py
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from rapid_assessment.api.v1.auth import get_current_user
from rapid_assessment.core.exceptions import InvalidRequestError
from rapid_assessment.models.assessment import (
    AssessmentCreate,
    AssessmentOut,
    AssessmentStatus,
    AssessmentUpdate,
    ResponsesUpdate,
    ValidationRequest,
)
from rapid_assessment.repositories import assessments as assessment_repo
from rapid_assessment.repositories import companies as company_repo
from rapid_assessment.repositories import reports as report_repo
from rapid_assessment.services import autosave, completion, validation
from rapid_assessment.services.questionnaire import (
    category_ids,
    get_active_questionnaire,
    get_category,
    get_subcategory,
)
from rapid_assessment.services.validation_cache import validation_cache

router = APIRouter(prefix="/assessments", tags=["assessments"], dependencies=[Depends(get_current_user)])


async def _assessment_or_404(assessment_id: str):
    doc = await assessment_repo.get_assessment(assessment_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return doc


@router.get("")
async def list_assessments_route(company_id: Optional[str] = Query(None),
                                 status: Optional[AssessmentStatus] = Query(None),
                                 limit: int = Query(50, ge=1, le=200), skip: int = Query(0, ge=0)):
    rows = await assessment_repo.list_assessments(
        company_id=company_id, status=status.value if status else None, limit=limit, skip=skip
    )
    return {"items": rows, "count": len(rows)}

@router.post("", status_code=201, response_model=AssessmentOut)
async def create_assessment_route(payload: AssessmentCreate):
    if not await company_repo.get_company(payload.company_id):
        raise HTTPException(status_code=404, detail="Company not found")
    structure = await get_active_questionnaire(payload.type)
    ids = category_ids(structure)
    return await assessment_repo.create_assessment(
        payload,
        first_category=ids[0] if ids else None,
        total_categories=len(ids),
        questionnaire_version=structure["version"],
    )

@router.get("/{assessment_id}")
async def get_assessment_route(assessment_id: str):
    doc = await _assessment_or_404(assessment_id)
    structure = await get_active_questionnaire(doc["type"])
    doc["statistics"] = completion.assessment_statistics(structure, doc.get("responses"))
    return doc

@router.patch("/{assessment_id}", response_model=AssessmentOut)
async def update_assessment_route(assessment_id: str, payload: AssessmentUpdate):
    doc = await _assessment_or_404(assessment_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "current_category" in changes or "current_subcategory" in changes:
        structure = await get_active_questionnaire(doc["type"])
        category_id = changes.get("current_category", doc.get("current_category"))
        if get_category(structure, category_id) is None:
            raise InvalidRequestError(f"Unknown category: {category_id}", code="UNKNOWN_CATEGORY")
        sub_id = changes.get("current_subcategory")
        if sub_id is not None and get_subcategory(structure, category_id, sub_id) is None:
            raise InvalidRequestError(f"Unknown subcategory: {sub_id}", code="UNKNOWN_SUBCATEGORY")
        changes.update(autosave.position_changes(
            doc, doc.get("current_category"), changes.get("current_category"), changes.get("current_subcategory"),
        ))
    if not changes:
        return doc
    return await assessment_repo.update_assessment(assessment_id, changes)

@router.delete("/{assessment_id}")
async def delete_assessment_route(assessment_id: str):
    ok = await assessment_repo.delete_assessment(assessment_id)
    if not ok:
        raise HTTPException(status_code=404, detail="Not found or already deleted")
    await validation_cache.clear_assessment(assessment_id)
    return {"deleted": True}

@router.get("/{assessment_id}/questionnaire")
async def get_assessment_questionnaire(assessment_id: str):
    doc = await _assessment_or_404(assessment_id)
    return await get_active_questionnaire(doc["type"])

# responses / auto-save

@router.get("/{assessment_id}/responses")
async def get_responses_route(assessment_id: str):
    doc = await _assessment_or_404(assessment_id)
    structure = await get_active_questionnaire(doc["type"])
    return {
        "assessment_id": doc["id"],
        "responses": doc.get("responses") or {},
        "category_statuses": doc.get("category_statuses") or {},
        "current_category": doc.get("current_category"),
        "current_subcategory": doc.get("current_subcategory"),
        "status": doc.get("status"),
        "statistics": completion.assessment_statistics(structure, doc.get("responses")),
    }

@router.put("/{assessment_id}/responses")
async def save_responses_route(assessment_id: str, payload: ResponsesUpdate):
    doc = await autosave.save_category_responses(
        assessment_id,
        payload.category_id,
        payload.responses,
        current_category=payload.current_category,
        current_subcategory=payload.current_subcategory,
    )
    return {
        "saved": True,
        "category_id": payload.category_id,
        "category_status": doc["category_statuses"][payload.category_id],
        "status": doc["status"],
        "updated_at": doc["updated_at"],
    }

@router.post("/{assessment_id}/complete", response_model=AssessmentOut)
async def complete_assessment_route(assessment_id: str):
    return await autosave.complete_assessment(assessment_id)

@router.get("/{assessment_id}/review")
async def review_route(assessment_id: str):
    doc = await _assessment_or_404(assessment_id)
    structure = await get_active_questionnaire(doc["type"])
    review = completion.build_review(structure, doc.get("responses"))
    return {"assessment_id": doc["id"], "type": doc["type"], "status": doc["status"], **review}

@router.get("/{assessment_id}/categories/{category_id}/navigation")
async def navigation_route(assessment_id: str, category_id: str):
    doc = await _assessment_or_404(assessment_id)
    structure = await get_active_questionnaire(doc["type"])
    category = get_category(structure, category_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return completion.navigation_state(structure, doc.get("responses"), category)

# validation

@router.get("/{assessment_id}/validate")
async def validation_summary_route(assessment_id: str):
    doc = await _assessment_or_404(assessment_id)
    structure = await get_active_questionnaire(doc["type"])
    return await validation.cached_validation_summary(doc, structure)

@router.post("/{assessment_id}/validate")
async def validate_route(assessment_id: str, payload: ValidationRequest):
    doc = await _assessment_or_404(assessment_id)
    structure = await get_active_questionnaire(doc["type"])
    if payload.validation_type == "category":
        if not payload.category_id:
            raise HTTPException(status_code=400, detail="category_id is required for category validation")
        if get_category(structure, payload.category_id) is None:
            raise HTTPException(status_code=404, detail="Category not found")
    result = await validation.cached_validation(payload.validation_type, doc, structure, payload.category_id)
    return {"validation_type": payload.validation_type, "category_id": payload.category_id, **result}

@router.put("/{assessment_id}/validate")
async def validated_save_route(assessment_id: str, payload: ResponsesUpdate):
    doc = await autosave.save_category_responses(
        assessment_id,
        payload.category_id,
        payload.responses,
        current_category=payload.current_category,
        current_subcategory=payload.current_subcategory,
    )
    structure = await get_active_questionnaire(doc["type"])
    return {
        "saved": True,
        "category_id": payload.category_id,
        "category_statuses": doc["category_statuses"],
        "validation": validation.validate_category(structure, doc.get("responses"), payload.category_id),
    }

@router.delete("/{assessment_id}/validate")
async def clear_validation_cache_route(assessment_id: str):
    await _assessment_or_404(assessment_id)
    removed = await validation_cache.clear_assessment(assessment_id)
    return {"cleared": True, "keys_removed": removed}

@router.get("/{assessment_id}/report")
async def assessment_report_route(assessment_id: str):
    await _assessment_or_404(assessment_id)
    report = await report_repo.get_report_for_assessment(assessment_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report
