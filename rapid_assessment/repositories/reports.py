# rapid_assessment/repositories/reports.py
from typing import Optional, List, Dict, Any

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from rapid_assessment.core.exceptions import ConflictError
from rapid_assessment.db.mongo import get_db, REPORTS_COLLECTION, REPORT_REQUESTS_COLLECTION
from rapid_assessment.models.report import ReportRequestStatus
from rapid_assessment.repositories.common import now, to_id, to_oid

# list views never ship the rendered document
_LIST_PROJECTION = {"html_content": 0}


async def insert_report(payload: Dict[str, Any]) -> Dict[str, Any]:
    db = get_db()
    doc = dict(payload)
    try:
        res = await db[REPORTS_COLLECTION].insert_one(doc)
    except DuplicateKeyError:
        raise ConflictError("Report already exists for this assessment", code="REPORT_EXISTS")
    doc["_id"] = res.inserted_id
    return to_id(doc)

async def replace_report(payload: Dict[str, Any]) -> Dict[str, Any]:
    # keyed on assessment_id: regenerating keeps one report per assessment
    db = get_db()
    doc = await db[REPORTS_COLLECTION].find_one_and_update(
        {"assessment_id": payload["assessment_id"]},
        {"$set": payload},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return to_id(doc)

async def get_report(report_id: str) -> Optional[Dict[str, Any]]:
    oid = to_oid(report_id)
    if oid is None:
        return None
    db = get_db()
    return to_id(await db[REPORTS_COLLECTION].find_one({"_id": oid}))

async def get_report_for_assessment(assessment_id: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return to_id(await db[REPORTS_COLLECTION].find_one({"assessment_id": assessment_id}))

async def list_reports(company_id: Optional[str] = None, assessment_id: Optional[str] = None,
                       limit: int = 50, skip: int = 0) -> List[Dict[str, Any]]:
    db = get_db()
    query = {}
    if company_id:
        query["company_id"] = company_id
    if assessment_id:
        query["assessment_id"] = assessment_id
    cur = db[REPORTS_COLLECTION].find(query, _LIST_PROJECTION).sort("generated_at", -1).skip(skip).limit(limit)
    out = []
    async for d in cur:
        out.append(to_id(d))
    return out

async def delete_report(report_id: str) -> bool:
    oid = to_oid(report_id)
    if oid is None:
        return False
    db = get_db()
    res = await db[REPORTS_COLLECTION].delete_one({"_id": oid})
    return res.deleted_count > 0

async def create_report_request(assessment_id: str, company_id: str) -> Dict[str, Any]:
    db = get_db()
    payload = {
        "assessment_id": assessment_id,
        "company_id": company_id,
        "status": ReportRequestStatus.PENDING.value,
        "requested_at": now(),
        "completed_at": None,
        "report_id": None,
        "error_message": None,
        "retry_count": 0,
    }
    res = await db[REPORT_REQUESTS_COLLECTION].insert_one(payload)
    payload["_id"] = res.inserted_id
    return to_id(payload)

async def get_report_request(request_id: str) -> Optional[Dict[str, Any]]:
    oid = to_oid(request_id)
    if oid is None:
        return None
    db = get_db()
    return to_id(await db[REPORT_REQUESTS_COLLECTION].find_one({"_id": oid}))

async def update_report_request(request_id: str, changes: Dict[str, Any],
                                increment_retry: bool = False) -> Optional[Dict[str, Any]]:
    oid = to_oid(request_id)
    if oid is None:
        return None
    update: Dict[str, Any] = {"$set": changes}
    if increment_retry:
        update["$inc"] = {"retry_count": 1}
    db = get_db()
    doc = await db[REPORT_REQUESTS_COLLECTION].find_one_and_update(
        {"_id": oid}, update, return_document=ReturnDocument.AFTER
    )
    return to_id(doc)
