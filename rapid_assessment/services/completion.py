# rapid_assessment/services/completion.py
"""
Completion tracking derived from the nested response map
``{category_id: {question_id: value}}``.

Only required questions drive completion. A category with no required
questions counts as 100% complete.
"""

import math
from typing import Any, Dict, List, Optional

from rapid_assessment.models.assessment import CompletionStatus
from rapid_assessment.repositories.common import now
from rapid_assessment.services.questionnaire import category_questions, neighbours


def is_answered(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def percent(part: int, whole: int) -> int:
    # half-up rounding
    if whole <= 0:
        return 0
    return int(math.floor(part * 100.0 / whole + 0.5))


def _category_responses(responses: Optional[Dict[str, Any]], category_id: str) -> Dict[str, Any]:
    value = (responses or {}).get(category_id)
    return value if isinstance(value, dict) else {}


def _question_ref(q: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": q.get("id"), "number": q.get("number"), "text": q.get("text"), "subcategory": q.get("subcategory")}


def category_completion(category: Dict[str, Any], category_responses: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    answers = category_responses if isinstance(category_responses, dict) else {}
    questions = category_questions(category)
    required = [q for q in questions if q.get("required")]
    answered = [q for q in questions if is_answered(answers.get(q.get("id")))]
    missing = [q for q in required if not is_answered(answers.get(q.get("id")))]
    answered_required = len(required) - len(missing)

    pct = percent(answered_required, len(required)) if required else 100
    if not missing:
        status = CompletionStatus.COMPLETED
    elif answered:
        status = CompletionStatus.PARTIAL
    else:
        status = CompletionStatus.NOT_STARTED

    return {
        "category_id": category.get("id"),
        "title": category.get("title"),
        "total_questions": len(questions),
        "answered_questions": len(answered),
        "required_questions": len(required),
        "answered_required": answered_required,
        "completion_percentage": pct,
        "status": status.value,
        "missing_required": [_question_ref(q) for q in missing],
    }


def category_status_entry(category: Dict[str, Any], category_responses: Optional[Dict[str, Any]], ts=None) -> Dict[str, Any]:
    """Shape stored under ``category_statuses.<category_id>``."""
    result = category_completion(category, category_responses)
    return {
        "status": result["status"],
        "completion_percentage": result["completion_percentage"],
        "last_modified": ts or now(),
    }


def all_category_statuses(structure: Dict[str, Any], responses: Optional[Dict[str, Any]],
                          previous: Optional[Dict[str, Any]] = None) -> Dict[str, Dict[str, Any]]:
    previous = previous or {}
    ts = now()
    out = {}
    for category in structure.get("categories") or []:
        cid = category["id"]
        entry = category_status_entry(category, _category_responses(responses, cid), ts)
        old = previous.get(cid) or {}
        # keep the old timestamp when nothing changed
        if old.get("status") == entry["status"] and old.get("completion_percentage") == entry["completion_percentage"]:
            entry["last_modified"] = old.get("last_modified") or ts
        out[cid] = entry
    return out


def assessment_statistics(structure: Dict[str, Any], responses: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    categories = structure.get("categories") or []
    per_category = [category_completion(c, _category_responses(responses, c["id"])) for c in categories]
    completed = sum(1 for c in per_category if c["status"] == CompletionStatus.COMPLETED.value)
    partial = sum(1 for c in per_category if c["status"] == CompletionStatus.PARTIAL.value)
    total = len(per_category)
    required = sum(c["required_questions"] for c in per_category)
    answered_required = sum(c["answered_required"] for c in per_category)
    overall = int(math.floor((completed + 0.5 * partial) / total * 100 + 0.5)) if total else 0
    return {
        "total_categories": total,
        "completed_categories": completed,
        "partial_categories": partial,
        "not_started_categories": total - completed - partial,
        "overall_completion": overall,
        "total_questions": sum(c["total_questions"] for c in per_category),
        "answered_questions": sum(c["answered_questions"] for c in per_category),
        "required_questions": required,
        "answered_required": answered_required,
        "required_completion": percent(answered_required, required) if required else 100,
    }


def missing_required(structure: Dict[str, Any], responses: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out = []
    for category in structure.get("categories") or []:
        result = category_completion(category, _category_responses(responses, category["id"]))
        for q in result["missing_required"]:
            out.append({**q, "category": category["id"]})
    return out


def is_assessment_complete(structure: Dict[str, Any], responses: Optional[Dict[str, Any]]) -> bool:
    return not missing_required(structure, responses)


def next_recommended_category(structure: Dict[str, Any], responses: Optional[Dict[str, Any]]) -> Optional[str]:
    for category in structure.get("categories") or []:
        result = category_completion(category, _category_responses(responses, category["id"]))
        if result["status"] != CompletionStatus.COMPLETED.value:
            return category["id"]
    return None


def navigation_state(structure: Dict[str, Any], responses: Optional[Dict[str, Any]], category: Dict[str, Any]) -> Dict[str, Any]:
    """
    Decide whether the client may move past ``category``: every required
    question in it must be answered and a following category must exist.
    """
    result = category_completion(category, _category_responses(responses, category["id"]))
    prev_id, next_id = neighbours(structure, category["id"])
    category_complete = not result["missing_required"]
    return {
        "category_id": category["id"],
        "category_complete": category_complete,
        "completion_percentage": result["completion_percentage"],
        "status": result["status"],
        "missing_required": result["missing_required"],
        "previous_category": prev_id,
        "next_category": next_id,
        "is_last_category": next_id is None,
        "can_advance": category_complete and next_id is not None,
        "can_complete": is_assessment_complete(structure, responses),
    }


def build_review(structure: Dict[str, Any], responses: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    categories = []
    issues = []
    for category in structure.get("categories") or []:
        cat_answers = _category_responses(responses, category["id"])
        result = category_completion(category, cat_answers)
        subcategories = []
        for sub in category.get("subcategories") or []:
            questions = sub.get("questions") or []
            required = [q for q in questions if q.get("required")]
            answered_required = sum(1 for q in required if is_answered(cat_answers.get(q.get("id"))))
            subcategories.append({
                "id": sub.get("id"),
                "title": sub.get("title"),
                "question_count": len(questions),
                "required_count": len(required),
                "answered_count": sum(1 for q in questions if is_answered(cat_answers.get(q.get("id")))),
                "answered_required": answered_required,
                "completion_percentage": percent(answered_required, len(required)) if required else 100,
                "is_complete": answered_required == len(required),
            })
        if result["missing_required"]:
            issues.append(
                f"{category.get('title') or category['id']}: {len(result['missing_required'])} required question(s) unanswered"
            )
        categories.append({
            "id": category["id"],
            "title": category.get("title"),
            "question_count": result["total_questions"],
            "required_count": result["required_questions"],
            "answered_count": result["answered_questions"],
            "answered_required": result["answered_required"],
            "completion_percentage": result["completion_percentage"],
            "status": result["status"],
            "is_complete": not result["missing_required"],
            "missing_required_questions": result["missing_required"],
            "subcategories": subcategories,
        })

    stats = assessment_statistics(structure, responses)
    all_required = stats["answered_required"] == stats["required_questions"]
    return {
        "categories": categories,
        "summary": {
            "total_categories": stats["total_categories"],
            "completed_categories": stats["completed_categories"],
            "total_questions": stats["total_questions"],
            "answered_questions": stats["answered_questions"],
            "required_questions": stats["required_questions"],
            "answered_required": stats["answered_required"],
            "overall_completion": stats["overall_completion"],
            "required_completion": stats["required_completion"],
        },
        "validation": {
            "all_required_answered": all_required,
            "ready_for_completion": all_required,
            "next_recommended_category": next_recommended_category(structure, responses),
            "completion_issues": issues,
        },
    }
