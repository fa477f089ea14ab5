"""
RAPID questionnaire lookup.

The v3.0 questionnaire ships as package data
(``rapid_assessment/data/rapid_questionnaire_v3.json``): every category is
stored once and each assessment path lists the category ids it uses, in
order. Stored versions in MongoDB take precedence over the bundled copy.

Public:
- get_questionnaire(assessment_type) -> dict            bundled structure
- async get_active_questionnaire(assessment_type) -> dict
- category_ids / get_category / category_questions / all_questions / find_question
- async initialize_default_questionnaires(force=False) -> list[str]
"""

import copy
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from rapid_assessment.models.assessment import AssessmentType
from rapid_assessment.repositories import questionnaires as questionnaire_repo

logger = logging.getLogger(__name__)

DATA_FILE = Path(__file__).resolve().parent.parent / "data" / "rapid_questionnaire_v3.json"


@lru_cache()
def _load_bundled() -> Dict[str, Any]:
    with DATA_FILE.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _normalize_type(assessment_type) -> str:
    value = getattr(assessment_type, "value", assessment_type)
    return AssessmentType(str(value).upper()).value


@lru_cache()
def _bundled_structure(assessment_type: str) -> Dict[str, Any]:
    data = _load_bundled()
    by_id = {c["id"]: c for c in data["categories"]}
    path = data["paths"][assessment_type]
    return {
        "version": data["version"],
        "assessment_type": assessment_type,
        "total_questions": path["total_questions"],
        "last_updated": data["last_updated"],
        "categories": [by_id[cid] for cid in path["categories"]],
    }


def bundled_version() -> str:
    return _load_bundled()["version"]


def get_questionnaire(assessment_type) -> Dict[str, Any]:
    """Bundled questionnaire for a path. Returns a copy callers may mutate."""
    return copy.deepcopy(_bundled_structure(_normalize_type(assessment_type)))


async def get_active_questionnaire(assessment_type) -> Dict[str, Any]:
    atype = _normalize_type(assessment_type)
    stored = await questionnaire_repo.get_active(atype)
    if stored:
        return stored
    return get_questionnaire(atype)


def category_ids(structure: Dict[str, Any]) -> List[str]:
    return [c["id"] for c in structure.get("categories") or []]


def get_category(structure: Dict[str, Any], category_id: str) -> Optional[Dict[str, Any]]:
    for category in structure.get("categories") or []:
        if category.get("id") == category_id:
            return category
    return None


def get_subcategory(structure: Dict[str, Any], category_id: str, subcategory_id: str) -> Optional[Dict[str, Any]]:
    category = get_category(structure, category_id)
    if not category:
        return None
    for sub in category.get("subcategories") or []:
        if sub.get("id") == subcategory_id:
            return sub
    return None


def category_questions(category: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [q for sub in category.get("subcategories") or [] for q in sub.get("questions") or []]


def all_questions(structure: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [q for c in structure.get("categories") or [] for q in category_questions(c)]


def find_question(category: Dict[str, Any], question_id: str) -> Optional[Dict[str, Any]]:
    for q in category_questions(category):
        if q.get("id") == question_id:
            return q
    return None


def neighbours(structure: Dict[str, Any], category_id: str):
    """(previous_category_id, next_category_id) around a category."""
    ids = category_ids(structure)
    if category_id not in ids:
        return None, None
    idx = ids.index(category_id)
    prev_id = ids[idx - 1] if idx > 0 else None
    next_id = ids[idx + 1] if idx + 1 < len(ids) else None
    return prev_id, next_id


async def initialize_default_questionnaires(force: bool = False) -> List[str]:
    """
    Store the bundled questionnaires. Types that already have a stored
    version are left alone unless ``force`` is set. Returns the seeded types.
    """
    seeded = []
    for atype in AssessmentType:
        if not force and await questionnaire_repo.count_for_type(atype.value) > 0:
            continue
        await questionnaire_repo.store_questionnaire(get_questionnaire(atype), active=True)
        seeded.append(atype.value)
    if seeded:
        logger.info("Seeded RAPID questionnaire v%s for %s", bundled_version(), ", ".join(seeded))
    return seeded
