"""
RAPID questionnaire and response validation.

Every check returns a result of the form::

    {"is_valid": bool, "errors": [...], "warnings": [...], "completion_status": {...}}

where each issue is ``{code, message, severity, field?, category?, question?}``.
Structure checks look at the questionnaire alone, response checks at the
format of submitted answers, completion checks at required answers.
"""

import hashlib
import json
import logging
import math
import re
from typing import Any, Dict, List, Optional

from rapid_assessment.models.assessment import AssessmentType
from rapid_assessment.models.questionnaire import (
    EXPECTED_CATEGORY_COUNTS,
    OPTION_QUESTION_TYPES,
    QUESTION_TYPES,
)
from rapid_assessment.services.completion import category_completion, is_answered, percent
from rapid_assessment.services.questionnaire import category_questions, find_question, get_category
from rapid_assessment.services.validation_cache import validation_cache

logger = logging.getLogger(__name__)

ERROR = "error"
WARNING = "warning"
_MISSING_PREVIEW = 3


def _issue(code: str, message: str, severity: str = ERROR, field: Optional[str] = None,
           category: Optional[str] = None, question: Optional[str] = None) -> Dict[str, Any]:
    issue = {"code": code, "message": message, "severity": severity}
    if field is not None:
        issue["field"] = field
    if category is not None:
        issue["category"] = category
    if question is not None:
        issue["question"] = question
    return issue


def completion_status(structure: Dict[str, Any], responses: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    responses = responses or {}
    categories = {}
    required_total = 0
    required_answered = 0
    for category in structure.get("categories") or []:
        answers = responses.get(category.get("id"))
        result = category_completion(category, answers if isinstance(answers, dict) else {})
        categories[category.get("id")] = result["completion_percentage"]
        required_total += result["required_questions"]
        required_answered += result["answered_required"]
    return {
        "overall_completion": percent(required_answered, required_total) if required_total else 100,
        "category_completions": categories,
        "required_questions_answered": required_answered,
        "total_required_questions": required_total,
    }


def _result(errors, warnings, status, require_complete: bool = False) -> Dict[str, Any]:
    valid = not errors
    if require_complete:
        valid = valid and status["overall_completion"] == 100
    return {"is_valid": valid, "errors": errors, "warnings": warnings, "completion_status": status}


# structure

_EMPTY_STATUS = {
    "overall_completion": 0, "category_completions": {},
    "required_questions_answered": 0, "total_required_questions": 0,
}


def _is_key(value: Any) -> bool:
    # ids and numbers are compared and de-duplicated, so only plain scalars qualify
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def _check_header(structure, errors, warnings) -> bool:
    if not structure.get("version"):
        errors.append(_issue("MISSING_VERSION", "Questionnaire version is required", field="version"))

    atype = structure.get("assessment_type")
    if atype not in (t.value for t in AssessmentType):
        errors.append(_issue("INVALID_TYPE", "Questionnaire type must be either EXPLORATORY or MIGRATION",
                             field="assessment_type"))

    categories = structure.get("categories")
    if not isinstance(categories, list):
        errors.append(_issue("MISSING_CATEGORIES", "Categories array is required", field="categories"))
        return False
    if not categories:
        errors.append(_issue("EMPTY_CATEGORIES", "At least one category is required", field="categories"))

    expected = EXPECTED_CATEGORY_COUNTS.get(atype) if isinstance(atype, str) else None
    if expected is not None and len(categories) != expected:
        warnings.append(_issue(
            "UNEXPECTED_CATEGORY_COUNT",
            f"Expected {expected} categories for {atype} assessment, found {len(categories)}",
            WARNING, field="categories",
        ))
    return True


def _usable_subcategories(subcategories, ctx, cid, errors) -> List[Dict[str, Any]]:
    if subcategories is not None and not isinstance(subcategories, list):
        errors.append(_issue("INVALID_SUBCATEGORY", "Subcategories must be an array",
                             field=f"{ctx}.subcategories", category=cid))
        return []
    usable = []
    for s_index, sub in enumerate(subcategories or []):
        s_ctx = f"{ctx}.subcategories[{s_index}]"
        if not isinstance(sub, dict):
            errors.append(_issue("INVALID_SUBCATEGORY", "Subcategory must be an object", field=s_ctx, category=cid))
            continue
        questions = sub.get("questions")
        if questions is not None and not isinstance(questions, list):
            errors.append(_issue("INVALID_QUESTION", "Questions must be an array",
                                 field=f"{s_ctx}.questions", category=cid))
            questions = []
        kept = []
        for q_index, question in enumerate(questions or []):
            if not isinstance(question, dict):
                errors.append(_issue("INVALID_QUESTION", "Question must be an object",
                                     field=f"{s_ctx}.questions[{q_index}]", category=cid))
                continue
            kept.append(question)
        usable.append({**sub, "questions": kept})
    return usable


def _check_categories(categories, errors, warnings) -> List[Dict[str, Any]]:
    """
    Category-level checks. Returns the categories that can be inspected
    further, with malformed subcategories and questions left out.
    """
    seen = set()
    usable = []
    for index, category in enumerate(categories):
        ctx = f"categories[{index}]"
        if not isinstance(category, dict):
            errors.append(_issue("INVALID_CATEGORY", "Category must be an object", field=ctx))
            continue
        cid = category.get("id")
        if not cid:
            errors.append(_issue("MISSING_CATEGORY_ID", "Category ID is required", field=f"{ctx}.id"))
        elif not isinstance(cid, str):
            errors.append(_issue("INVALID_CATEGORY", "Category ID must be a string", field=f"{ctx}.id"))
            continue
        else:
            if cid in seen:
                errors.append(_issue("DUPLICATE_CATEGORY_ID", f"Duplicate category ID: {cid}",
                                     field=f"{ctx}.id", category=cid))
            seen.add(cid)

        if not category.get("title"):
            errors.append(_issue("MISSING_CATEGORY_TITLE", "Category title is required",
                                 field=f"{ctx}.title", category=cid))

        raw = category.get("subcategories")
        subcategories = _usable_subcategories(raw, ctx, cid, errors)
        usable.append({**category, "subcategories": subcategories})
        if raw is not None and not isinstance(raw, list):
            continue
        if not raw:
            warnings.append(_issue("EMPTY_SUBCATEGORIES", "Category has no subcategories", WARNING,
                                   field=f"{ctx}.subcategories", category=cid))
            continue

        declared = category.get("total_questions")
        actual = sum(len(sub["questions"]) for sub in subcategories)
        if declared != actual:
            errors.append(_issue(
                "QUESTION_COUNT_MISMATCH",
                f"Category total_questions ({declared}) doesn't match actual count ({actual})",
                field=f"{ctx}.total_questions", category=cid,
            ))
    return usable


def _check_questions(categories, errors, warnings):
    seen_ids = set()
    for category in categories:
        cid = category.get("id")
        for sub in category["subcategories"]:
            sid = sub.get("id")
            # question numbers restart in every subcategory
            seen_numbers = set()
            for q_index, question in enumerate(sub["questions"]):
                ctx = f"{cid}.{sid}.questions[{q_index}]"
                qid = question.get("id")
                if not qid:
                    errors.append(_issue("MISSING_QUESTION_ID", "Question ID is required",
                                         field=f"{ctx}.id", category=cid))
                elif not _is_key(qid):
                    errors.append(_issue("INVALID_QUESTION", "Question ID must be a string",
                                         field=f"{ctx}.id", category=cid))
                    qid = None
                else:
                    if qid in seen_ids:
                        errors.append(_issue("DUPLICATE_QUESTION_ID", f"Duplicate question ID: {qid}",
                                             field=f"{ctx}.id", category=cid, question=qid))
                    seen_ids.add(qid)

                number = question.get("number")
                if not number:
                    errors.append(_issue("MISSING_QUESTION_NUMBER", "Question number is required",
                                         field=f"{ctx}.number", category=cid, question=qid))
                elif not _is_key(number):
                    errors.append(_issue("INVALID_QUESTION", "Question number must be a string",
                                         field=f"{ctx}.number", category=cid, question=qid))
                else:
                    if number in seen_numbers:
                        errors.append(_issue("DUPLICATE_QUESTION_NUMBER", f"Duplicate question number: {number}",
                                             field=f"{ctx}.number", category=cid, question=qid))
                    seen_numbers.add(number)

                if not question.get("text"):
                    errors.append(_issue("MISSING_QUESTION_TEXT", "Question text is required",
                                         field=f"{ctx}.text", category=cid, question=qid))

                qtype = question.get("type")
                options = question.get("options")
                if qtype not in QUESTION_TYPES:
                    errors.append(_issue("INVALID_QUESTION_TYPE",
                                         f"Invalid question type: {qtype}. Must be one of: {', '.join(QUESTION_TYPES)}",
                                         field=f"{ctx}.type", category=cid, question=qid))
                elif qtype in OPTION_QUESTION_TYPES and not options:
                    errors.append(_issue("MISSING_QUESTION_OPTIONS", f"Question type {qtype} requires options",
                                         field=f"{ctx}.options", category=cid, question=qid))
                elif options is not None and not isinstance(options, list):
                    errors.append(_issue("INVALID_QUESTION", "Question options must be an array",
                                         field=f"{ctx}.options", category=cid, question=qid))

                if question.get("category") != cid:
                    warnings.append(_issue(
                        "CATEGORY_MISMATCH",
                        f"Question category ({question.get('category')}) doesn't match parent category ({cid})",
                        WARNING, field=f"{ctx}.category", category=cid, question=qid,
                    ))
                if question.get("subcategory") != sid:
                    warnings.append(_issue(
                        "SUBCATEGORY_MISMATCH",
                        f"Question subcategory ({question.get('subcategory')}) doesn't match parent subcategory ({sid})",
                        WARNING, field=f"{ctx}.subcategory", category=cid, question=qid,
                    ))


def _countable(categories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {**c, "subcategories": [
            {**s, "questions": [q for q in s["questions"] if _is_key(q.get("id"))]}
            for s in c["subcategories"]
        ]}
        for c in categories
    ]


def validate_structure(structure: Dict[str, Any]) -> Dict[str, Any]:
    errors: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []
    if not _check_header(structure, errors, warnings):
        return _result(errors, warnings, dict(_EMPTY_STATUS))
    usable = _check_categories(structure["categories"], errors, warnings)
    _check_questions(usable, errors, warnings)
    return _result(errors, warnings, completion_status({"categories": _countable(usable)}, {}))


# responses

_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def _is_number(value: Any) -> bool:
    # finite decimals only: no "inf", "nan" or "1_000"
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if not isinstance(value, str) or not _NUMBER_RE.match(value.strip()):
        return False
    return math.isfinite(float(value))


def _check_answer_format(question: Dict[str, Any], value: Any, category_id: str) -> Optional[Dict[str, Any]]:
    qtype = question.get("type")
    qid = question.get("id")
    number = question.get("number")
    options = question.get("options") or []
    field = f"responses.{category_id}.{qid}"

    if qtype == "number" and not _is_number(value):
        return _issue("INVALID_NUMBER_FORMAT", f"Invalid number format for question {number}",
                      field=field, category=category_id, question=qid)
    if qtype in ("select", "radio") and options and value not in options:
        return _issue("INVALID_OPTION_VALUE", f'Invalid option value "{value}" for question {number}',
                      field=field, category=category_id, question=qid)
    if qtype == "checkbox" and options:
        if isinstance(value, list):
            for item in value:
                if item not in options:
                    return _issue("INVALID_CHECKBOX_VALUE", f'Invalid checkbox value "{item}" for question {number}',
                                  field=field, category=category_id, question=qid)
        elif value not in options:
            return _issue("INVALID_CHECKBOX_FORMAT",
                          f"Checkbox response should be array or valid option for question {number}",
                          field=field, category=category_id, question=qid)
    return None


def _check_category_responses(category: Dict[str, Any], answers: Dict[str, Any], errors, warnings,
                              report_missing: bool = True):
    cid = category["id"]
    for qid, value in answers.items():
        question = find_question(category, qid)
        if question is None:
            warnings.append(_issue("UNKNOWN_QUESTION", f"Response for unknown question: {qid}", WARNING,
                                   field=f"responses.{cid}.{qid}", category=cid, question=qid))
            continue
        if not is_answered(value):
            continue
        issue = _check_answer_format(question, value, cid)
        if issue:
            errors.append(issue)

    if report_missing:
        for question in category_questions(category):
            if question.get("required") and not is_answered(answers.get(question.get("id"))):
                warnings.append(_issue(
                    "MISSING_REQUIRED_RESPONSE",
                    f"Required question not answered: {question.get('number')} - {question.get('text')}",
                    WARNING, field=f"responses.{cid}.{question.get('id')}", category=cid, question=question.get("id"),
                ))


def validate_responses(structure: Dict[str, Any], responses: Optional[Dict[str, Any]],
                       category_id: Optional[str] = None, report_missing: bool = True) -> Dict[str, Any]:
    errors: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []
    responses = responses or {}
    for cid, answers in responses.items():
        if category_id is not None and cid != category_id:
            continue
        category = get_category(structure, cid)
        if category is None:
            warnings.append(_issue("UNKNOWN_CATEGORY", f"Responses for unknown category: {cid}", WARNING,
                                   field=f"responses.{cid}", category=cid))
            continue
        if not isinstance(answers, dict):
            errors.append(_issue("INVALID_CATEGORY_RESPONSES", f"Responses for category {cid} must be an object",
                                 field=f"responses.{cid}", category=cid))
            continue
        _check_category_responses(category, answers, errors, warnings, report_missing)

    if report_missing:
        # categories with no responses at all still have required questions
        for category in structure.get("categories") or []:
            if category_id is not None and category["id"] != category_id:
                continue
            if category["id"] not in responses:
                _check_category_responses(category, {}, errors, warnings, report_missing=True)
    return _result(errors, warnings, completion_status(structure, responses))


# completion

def validate_completion(structure: Dict[str, Any], responses: Optional[Dict[str, Any]],
                        category_id: Optional[str] = None) -> Dict[str, Any]:
    errors: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []
    responses = responses or {}
    missing = []
    for category in structure.get("categories") or []:
        cid = category["id"]
        if category_id is not None and cid != category_id:
            continue
        answers = responses.get(cid)
        result = category_completion(category, answers if isinstance(answers, dict) else {})
        for q in result["missing_required"]:
            missing.append(f"{q['number']} - {q['text']}")
        if result["completion_percentage"] < 100:
            warnings.append(_issue(
                "INCOMPLETE_CATEGORY",
                f"Category {category.get('title') or cid} is {result['completion_percentage']}% complete",
                WARNING, field=f"responses.{cid}", category=cid,
            ))

    if missing:
        preview = ", ".join(missing[:_MISSING_PREVIEW])
        if len(missing) > _MISSING_PREVIEW:
            preview += "..."
        errors.append(_issue(
            "INCOMPLETE_REQUIRED_QUESTIONS",
            f"{len(missing)} required questions not answered: {preview}",
            field="responses",
            category=category_id,
        ))

    status = completion_status(structure, responses)
    if category_id is not None:
        overall = status["category_completions"].get(category_id, 0)
        status = {**status, "overall_completion": overall}
    if status["overall_completion"] < 100:
        warnings.append(_issue(
            "INCOMPLETE_ASSESSMENT",
            f"Assessment is {status['overall_completion']}% complete",
            WARNING, field="responses", category=category_id,
        ))
    return _result(errors, warnings, status, require_complete=True)


def validate_category(structure: Dict[str, Any], responses: Optional[Dict[str, Any]], category_id: str) -> Dict[str, Any]:
    fmt = validate_responses(structure, responses, category_id=category_id, report_missing=False)
    comp = validate_completion(structure, responses, category_id=category_id)
    return {
        "is_valid": not fmt["errors"] and comp["is_valid"],
        "errors": fmt["errors"] + comp["errors"],
        "warnings": fmt["warnings"] + comp["warnings"],
        "completion_status": comp["completion_status"],
    }


def validate_before_save(structure: Dict[str, Any], responses: Optional[Dict[str, Any]],
                         category_id: Optional[str] = None) -> Dict[str, Any]:
    """Format-only check used by saves: unanswered required questions are fine mid-way."""
    return validate_responses(structure, responses, category_id=category_id, report_missing=False)


def validation_summary(structure: Dict[str, Any], responses: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    questionnaire = validate_structure(structure)
    resp = validate_responses(structure, responses)
    completion = validate_completion(structure, responses)
    error_count = sum(len(r["errors"]) for r in (questionnaire, resp, completion))
    warning_count = sum(len(r["warnings"]) for r in (questionnaire, resp, completion))
    return {
        "questionnaire": questionnaire,
        "responses": resp,
        "completion": completion,
        "overall": {
            "is_valid": error_count == 0 and completion["is_valid"],
            "error_count": error_count,
            "warning_count": warning_count,
            "completion_percentage": completion["completion_status"]["overall_completion"],
        },
    }


def responses_hash(responses: Optional[Dict[str, Any]]) -> str:
    raw = json.dumps(responses or {}, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


async def cached_validation_summary(assessment: Dict[str, Any], structure: Dict[str, Any]) -> Dict[str, Any]:
    """validation_summary for an assessment, memoized in Redis on its current responses."""
    responses = assessment.get("responses") or {}
    key = validation_cache.key("summary", assessment["id"], responses_hash(responses))
    cached = await validation_cache.get(key)
    if cached is not None:
        return cached
    summary = validation_summary(structure, responses)
    await validation_cache.set(key, summary)
    return summary


async def cached_validation(kind: str, assessment: Dict[str, Any], structure: Dict[str, Any],
                            category_id: Optional[str] = None) -> Dict[str, Any]:
    responses = assessment.get("responses") or {}
    key = validation_cache.key(kind, assessment["id"], responses_hash(responses), category_id)
    cached = await validation_cache.get(key)
    if cached is not None:
        return cached
    if kind == "questionnaire":
        result = validate_structure(structure)
    elif kind == "responses":
        result = validate_responses(structure, responses)
    elif kind == "completion":
        result = validate_completion(structure, responses)
    elif kind == "category":
        result = validate_category(structure, responses, category_id)
    else:
        raise ValueError(f"Unknown validation type: {kind}")
    await validation_cache.set(key, result)
    return result
