# rapid_assessment/services/autosave.py
"""
Server side of auto-save: persist one category's responses at a time.

Each save is a single ``find_one_and_update`` on the assessment document, so
a save either lands completely or not at all. Transient connection errors are
retried with exponential backoff (``AUTOSAVE_RETRY_DELAY * 2**attempt``).
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from pymongo.errors import AutoReconnect, NetworkTimeout

from rapid_assessment.core.config import settings
from rapid_assessment.core.exceptions import ConflictError, InvalidRequestError, NotFoundError
from rapid_assessment.models.assessment import AssessmentStatus
from rapid_assessment.repositories import assessments as assessment_repo
from rapid_assessment.services import completion
from rapid_assessment.services.questionnaire import get_active_questionnaire, get_category, get_subcategory
from rapid_assessment.services.validation import validate_before_save, validate_completion
from rapid_assessment.services.validation_cache import validation_cache

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (AutoReconnect, NetworkTimeout)


async def _with_retries(op, *args, **kwargs):
    retries = max(0, int(settings.AUTOSAVE_RETRIES))
    attempt = 0
    while True:
        try:
            return await op(*args, **kwargs)
        except _TRANSIENT_ERRORS as exc:
            if attempt >= retries:
                logger.error("auto-save gave up after %d retries: %s", attempt, exc)
                raise
            delay = settings.AUTOSAVE_RETRY_DELAY * (2 ** attempt)
            attempt += 1
            logger.warning("auto-save attempt %d failed (%s); retrying in %.2fs", attempt, exc, delay)
            await asyncio.sleep(delay)


async def load_assessment(assessment_id: str) -> Dict[str, Any]:
    doc = await assessment_repo.get_assessment(assessment_id)
    if not doc:
        raise NotFoundError("Assessment", assessment_id)
    return doc


def position_changes(assessment: Dict[str, Any], category_id: Optional[str],
                     current_category: Optional[str] = None,
                     current_subcategory: Optional[str] = None) -> Dict[str, Any]:
    """
    Pointer fields to write alongside a save. ``current_subcategory`` always
    belongs to ``current_category``: a subcategory on its own pins the
    category to ``category_id``, and moving to another category without
    naming a subcategory clears it.
    """
    changes: Dict[str, Any] = {}
    if current_subcategory is not None:
        changes["current_category"] = current_category or category_id
        changes["current_subcategory"] = current_subcategory
    elif current_category is not None:
        changes["current_category"] = current_category
        if current_category != assessment.get("current_category"):
            changes["current_subcategory"] = None
    return changes


async def save_category_responses(assessment_id: str, category_id: str, responses: Dict[str, Any],
                                  current_category: Optional[str] = None,
                                  current_subcategory: Optional[str] = None) -> Dict[str, Any]:
    assessment = await load_assessment(assessment_id)
    if assessment.get("status") == AssessmentStatus.COMPLETED.value:
        raise ConflictError("Completed assessments cannot be edited", code="ASSESSMENT_COMPLETED")

    structure = await get_active_questionnaire(assessment["type"])
    category = get_category(structure, category_id)
    if category is None:
        raise InvalidRequestError(f"Unknown category: {category_id}", code="UNKNOWN_CATEGORY")
    if current_category is not None and get_category(structure, current_category) is None:
        raise InvalidRequestError(f"Unknown category: {current_category}", code="UNKNOWN_CATEGORY")
    if current_subcategory is not None and get_subcategory(
            structure, current_category or category_id, current_subcategory) is None:
        raise InvalidRequestError(f"Unknown subcategory: {current_subcategory}", code="UNKNOWN_SUBCATEGORY")

    check = validate_before_save(structure, {category_id: responses}, category_id=category_id)
    if check["errors"]:
        raise InvalidRequestError(
            "Response validation failed",
            code="INVALID_RESPONSES",
            details={"errors": check["errors"], "warnings": check["warnings"]},
        )

    status_entry = completion.category_status_entry(category, responses)
    position = position_changes(assessment, category_id, current_category, current_subcategory)
    updated = await _with_retries(
        assessment_repo.save_category_responses,
        assessment_id, category_id, responses, status_entry, position=position,
    )
    if updated is None:
        # completed (or deleted) between the read and the write
        raise ConflictError("Assessment was completed before the save landed", code="ASSESSMENT_COMPLETED")

    await validation_cache.clear_assessment(assessment_id)
    logger.debug("saved %d responses for %s/%s", len(responses), assessment_id, category_id)
    return updated


async def complete_assessment(assessment_id: str) -> Dict[str, Any]:
    assessment = await load_assessment(assessment_id)
    if assessment.get("status") == AssessmentStatus.COMPLETED.value:
        return assessment

    structure = await get_active_questionnaire(assessment["type"])
    responses = assessment.get("responses") or {}
    result = validate_completion(structure, responses)
    if not result["is_valid"]:
        raise InvalidRequestError(
            "All required questions must be answered before completing the assessment",
            code="ASSESSMENT_INCOMPLETE",
            details={
                "missing_required": completion.missing_required(structure, responses),
                "completion_status": result["completion_status"],
            },
        )

    statuses = completion.all_category_statuses(structure, responses, assessment.get("category_statuses"))
    updated = await _with_retries(assessment_repo.mark_completed, assessment_id, statuses)
    await validation_cache.clear_assessment(assessment_id)
    logger.info("assessment %s completed", assessment_id)
    return updated
