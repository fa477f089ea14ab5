# rapid_assessment/repositories/questionnaires.py
from typing import Optional, List, Dict, Any

from rapid_assessment.db.mongo import get_db, QUESTIONNAIRES_COLLECTION
from rapid_assessment.repositories.common import now, to_id

_SUMMARY_PROJECTION = {"categories": 0}


async def store_questionnaire(structure: Dict[str, Any], active: bool = True) -> Dict[str, Any]:
    """
    Insert or replace a questionnaire version. Activating one version
    deactivates every other version of the same assessment type.
    """
    db = get_db()
    atype = structure["assessment_type"]
    version = structure["version"]
    if active:
        await db[QUESTIONNAIRES_COLLECTION].update_many(
            {"assessment_type": atype, "version": {"$ne": version}},
            {"$set": {"active": False}},
        )
    doc = {**structure, "active": active, "stored_at": now()}
    doc.pop("id", None)
    await db[QUESTIONNAIRES_COLLECTION].replace_one(
        {"assessment_type": atype, "version": version}, doc, upsert=True
    )
    return to_id(await db[QUESTIONNAIRES_COLLECTION].find_one({"assessment_type": atype, "version": version}))

async def get_active(assessment_type: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return to_id(await db[QUESTIONNAIRES_COLLECTION].find_one({"assessment_type": assessment_type, "active": True}))

async def get_by_version(assessment_type: str, version: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return to_id(await db[QUESTIONNAIRES_COLLECTION].find_one({"assessment_type": assessment_type, "version": version}))

async def list_versions(assessment_type: Optional[str] = None) -> List[Dict[str, Any]]:
    db = get_db()
    query = {"assessment_type": assessment_type} if assessment_type else {}
    cur = db[QUESTIONNAIRES_COLLECTION].find(query, _SUMMARY_PROJECTION).sort(
        [("assessment_type", 1), ("version", -1)]
    )
    out = []
    async for d in cur:
        out.append(to_id(d))
    return out

async def set_active(assessment_type: str, version: str, active: bool) -> Optional[Dict[str, Any]]:
    db = get_db()
    target = await db[QUESTIONNAIRES_COLLECTION].find_one({"assessment_type": assessment_type, "version": version})
    if not target:
        return None
    if active:
        await db[QUESTIONNAIRES_COLLECTION].update_many(
            {"assessment_type": assessment_type, "version": {"$ne": version}},
            {"$set": {"active": False}},
        )
    await db[QUESTIONNAIRES_COLLECTION].update_one({"_id": target["_id"]}, {"$set": {"active": active}})
    return await get_by_version(assessment_type, version)

async def count_for_type(assessment_type: str) -> int:
    db = get_db()
    return await db[QUESTIONNAIRES_COLLECTION].count_documents({"assessment_type": assessment_type})
