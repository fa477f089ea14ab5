# rapid_assessment/repositories/common.py
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_oid(value: Any) -> Optional[ObjectId]:
    # malformed ids are treated as "no such document" by callers
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def to_id(doc) -> Optional[Dict[str, Any]]:
    # convert Mongo's _id (ObjectId) to str when returning
    if not doc:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc["_id"])
        del doc["_id"]
    return doc
