# rapid_assessment/repositories/users.py
from typing import Any, Dict, Optional

from rapid_assessment.db.mongo import get_db, USERS_COLLECTION
from rapid_assessment.repositories.common import now, to_id, to_oid


async def create_user(email: str, password_hash: str) -> str:
    db = get_db()
    res = await db[USERS_COLLECTION].insert_one({
        "email": email.lower(),
        "password_hash": password_hash,
        "created_at": now(),
    })
    return str(res.inserted_id)

async def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    db = get_db()
    return to_id(await db[USERS_COLLECTION].find_one({"email": email.lower()}))

async def get_user(user_id: str) -> Optional[Dict[str, Any]]:
    oid = to_oid(user_id)
    if oid is None:
        return None
    db = get_db()
    return to_id(await db[USERS_COLLECTION].find_one({"_id": oid}))

async def set_password_hash(user_id: str, password_hash: str) -> bool:
    oid = to_oid(user_id)
    if oid is None:
        return False
    db = get_db()
    res = await db[USERS_COLLECTION].update_one(
        {"_id": oid}, {"$set": {"password_hash": password_hash, "updated_at": now()}}
    )
    return res.matched_count == 1
