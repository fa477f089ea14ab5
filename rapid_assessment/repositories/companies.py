# rapid_assessment/repositories/companies.py
import re
from typing import Any, Dict, List, Optional

from rapid_assessment.core.exceptions import ConflictError
from rapid_assessment.db.mongo import (
    get_db,
    ASSESSMENTS_COLLECTION,
    COMPANIES_COLLECTION,
    REPORTS_COLLECTION,
    REPORT_REQUESTS_COLLECTION,
)
from rapid_assessment.models.company import CompanyCreate, CompanyUpdate
from rapid_assessment.repositories.common import now, to_id, to_oid


async def _assessment_counts(company_ids: List[str]) -> Dict[str, int]:
    if not company_ids:
        return {}
    db = get_db()
    pipeline = [
        {"$match": {"company_id": {"$in": company_ids}}},
        {"$group": {"_id": "$company_id", "count": {"$sum": 1}}},
    ]
    counts = {}
    async for row in db[ASSESSMENTS_COLLECTION].aggregate(pipeline):
        counts[row["_id"]] = row["count"]
    return counts

async def _with_counts(docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    counts = await _assessment_counts([d["id"] for d in docs])
    for d in docs:
        d["assessment_count"] = counts.get(d["id"], 0)
    return docs

async def _name_taken(name: str, exclude_id=None) -> bool:
    db = get_db()
    query: Dict[str, Any] = {"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return await db[COMPANIES_COLLECTION].find_one(query) is not None

async def create_company(obj: CompanyCreate) -> Dict[str, Any]:
    if await _name_taken(obj.name):
        raise ConflictError("Company with this name already exists", code="DUPLICATE_COMPANY")
    db = get_db()
    ts = now()
    payload = {
        "name": obj.name,
        "description": obj.description,
        "created_at": ts,
        "updated_at": ts,
    }
    res = await db[COMPANIES_COLLECTION].insert_one(payload)
    payload["_id"] = res.inserted_id
    out = to_id(payload)
    out["assessment_count"] = 0
    return out

async def get_company(company_id: str) -> Optional[Dict[str, Any]]:
    oid = to_oid(company_id)
    if oid is None:
        return None
    db = get_db()
    doc = to_id(await db[COMPANIES_COLLECTION].find_one({"_id": oid}))
    if not doc:
        return None
    return (await _with_counts([doc]))[0]

async def list_companies(search: Optional[str] = None, limit: int = 50, skip: int = 0) -> List[Dict[str, Any]]:
    db = get_db()
    query: Dict[str, Any] = {}
    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query = {"$or": [{"name": pattern}, {"description": pattern}]}
    cur = db[COMPANIES_COLLECTION].find(query).sort("created_at", -1).skip(skip).limit(limit)
    out = []
    async for d in cur:
        out.append(to_id(d))
    return await _with_counts(out)

async def update_company(company_id: str, obj: CompanyUpdate) -> Optional[Dict[str, Any]]:
    oid = to_oid(company_id)
    if oid is None:
        return None
    changes = obj.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)
    if "name" in changes and await _name_taken(changes["name"], exclude_id=oid):
        raise ConflictError("Company with this name already exists", code="DUPLICATE_COMPANY")
    changes["updated_at"] = now()
    db = get_db()
    res = await db[COMPANIES_COLLECTION].update_one({"_id": oid}, {"$set": changes})
    if res.matched_count == 0:
        return None
    return await get_company(company_id)

async def delete_company(company_id: str) -> Optional[Dict[str, int]]:
    """
    Delete a company together with its assessments, their reports and any
    pending report requests. Returns the cascade counts, or None when the
    company does not exist.
    """
    oid = to_oid(company_id)
    if oid is None:
        return None
    db = get_db()
    if await db[COMPANIES_COLLECTION].find_one({"_id": oid}) is None:
        return None

    reports = await db[REPORTS_COLLECTION].delete_many({"company_id": company_id})
    await db[REPORT_REQUESTS_COLLECTION].delete_many({"company_id": company_id})
    assessments = await db[ASSESSMENTS_COLLECTION].delete_many({"company_id": company_id})
    await db[COMPANIES_COLLECTION].delete_one({"_id": oid})
    return {
        "assessments_deleted": assessments.deleted_count,
        "reports_deleted": reports.deleted_count,
    }
