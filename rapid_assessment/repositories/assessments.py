# rapid_assessment/repositories/assessments.py
from typing import Optional, List, Dict, Any

from pymongo import ReturnDocument

from rapid_assessment.db.mongo import (
    get_db,
    ASSESSMENTS_COLLECTION,
    REPORTS_COLLECTION,
    REPORT_REQUESTS_COLLECTION,
)
from rapid_assessment.models.assessment import AssessmentCreate, AssessmentStatus
from rapid_assessment.repositories.common import now, to_id, to_oid


async def create_assessment(obj: AssessmentCreate, first_category: Optional[str], total_categories: int,
                            questionnaire_version: str) -> Dict[str, Any]:
    db = get_db()
    ts = now()
    payload = {
        "name": obj.name,
        "company_id": obj.company_id,
        "type": obj.type.value,
        "status": AssessmentStatus.DRAFT.value,
        "current_category": first_category,
        "current_subcategory": None,
        "total_categories": total_categories,
        "responses": {},
        "category_statuses": {},
        "rapid_questionnaire_version": questionnaire_version,
        "created_at": ts,
        "updated_at": ts,
        "completed_at": None,
    }
    res = await db[ASSESSMENTS_COLLECTION].insert_one(payload)
    payload["_id"] = res.inserted_id
    return to_id(payload)

async def get_assessment(assessment_id: str) -> Optional[Dict[str, Any]]:
    oid = to_oid(assessment_id)
    if oid is None:
        return None
    db = get_db()
    return to_id(await db[ASSESSMENTS_COLLECTION].find_one({"_id": oid}))

async def list_assessments(company_id: Optional[str] = None, status: Optional[str] = None,
                           limit: int = 50, skip: int = 0) -> List[Dict[str, Any]]:
    db = get_db()
    query = {}
    if company_id:
        query["company_id"] = company_id
    if status:
        query["status"] = status
    cur = db[ASSESSMENTS_COLLECTION].find(query).sort("created_at", -1).skip(skip).limit(limit)
    out = []
    async for d in cur:
        out.append(to_id(d))
    return out

async def update_assessment(assessment_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    oid = to_oid(assessment_id)
    if oid is None:
        return None
    db = get_db()
    doc = await db[ASSESSMENTS_COLLECTION].find_one_and_update(
        {"_id": oid},
        {"$set": {**changes, "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    return to_id(doc)

async def save_category_responses(assessment_id: str, category_id: str, responses: Dict[str, Any],
                                  category_status: Dict[str, Any],
                                  position: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    """
    Single atomic write of one category's responses and status, plus any
    navigation pointer changes. Matches only assessments that are not
    COMPLETED; returns None when nothing matched.
    """
    oid = to_oid(assessment_id)
    if oid is None:
        return None
    changes = {
        f"responses.{category_id}": responses,
        f"category_statuses.{category_id}": category_status,
        "status": AssessmentStatus.IN_PROGRESS.value,
        "updated_at": now(),
    }
    changes.update(position or {})
    db = get_db()
    doc = await db[ASSESSMENTS_COLLECTION].find_one_and_update(
        {"_id": oid, "status": {"$ne": AssessmentStatus.COMPLETED.value}},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    return to_id(doc)

async def mark_completed(assessment_id: str, category_statuses: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    ts = now()
    return await update_assessment(assessment_id, {
        "status": AssessmentStatus.COMPLETED.value,
        "category_statuses": category_statuses,
        "completed_at": ts,
    })

async def delete_assessment(assessment_id: str) -> bool:
    oid = to_oid(assessment_id)
    if oid is None:
        return False
    db = get_db()
    res = await db[ASSESSMENTS_COLLECTION].delete_one({"_id": oid})
    if res.deleted_count == 0:
        return False
    await db[REPORTS_COLLECTION].delete_many({"assessment_id": assessment_id})
    await db[REPORT_REQUESTS_COLLECTION].delete_many({"assessment_id": assessment_id})
    return True
