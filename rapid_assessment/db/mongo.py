# rapid_assessment/db/mongo.py
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from rapid_assessment.core.config import settings

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
COMPANIES_COLLECTION = "companies"
ASSESSMENTS_COLLECTION = "assessments"
REPORTS_COLLECTION = "reports"
REPORT_REQUESTS_COLLECTION = "report_requests"
QUESTIONNAIRES_COLLECTION = "questionnaires"

_mongo_client: Optional[AsyncIOMotorClient] = None

def get_mongo_client() -> AsyncIOMotorClient:
    """
    Returns a cached Motor client.
    """
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    return _mongo_client

def get_db() -> AsyncIOMotorDatabase:
    client = get_mongo_client()
    return client[settings.MONGODB_DB]

async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db[USERS_COLLECTION].create_index("email", unique=True)
    await db[COMPANIES_COLLECTION].create_index("name")
    await db[ASSESSMENTS_COLLECTION].create_index([("company_id", ASCENDING), ("created_at", DESCENDING)])
    await db[REPORTS_COLLECTION].create_index("assessment_id", unique=True)
    await db[REPORTS_COLLECTION].create_index("company_id")
    await db[REPORT_REQUESTS_COLLECTION].create_index("assessment_id")
    await db[QUESTIONNAIRES_COLLECTION].create_index(
        [("assessment_type", ASCENDING), ("version", ASCENDING)], unique=True
    )

async def init_db() -> None:
    # imported here: the questionnaire service depends on the repositories,
    # which import this module
    from rapid_assessment.services.questionnaire import initialize_default_questionnaires

    db = get_db()
    await ensure_indexes(db)
    seeded = await initialize_default_questionnaires()
    logger.info("MongoDB ready (db=%s, questionnaires seeded=%s)", settings.MONGODB_DB, seeded)

def close_db() -> None:
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
