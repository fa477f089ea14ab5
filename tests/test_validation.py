# tests/test_validation.py
import copy

import pytest

from rapid_assessment.services import validation
from rapid_assessment.services.questionnaire import get_questionnaire


def _codes(issues):
    return [i["code"] for i in issues]


@pytest.mark.parametrize("atype", ["EXPLORATORY", "MIGRATION"])
def test_bundled_questionnaires_are_structurally_valid(atype):
    res = validation.validate_structure(get_questionnaire(atype))
    assert res["errors"] == []
    assert res["warnings"] == []


def test_structure_errors_are_reported():
    structure = get_questionnaire("EXPLORATORY")
    sub = structure["categories"][0]["subcategories"][0]
    sub["questions"][1]["id"] = sub["questions"][0]["id"]
    sub["questions"][2]["number"] = sub["questions"][0]["number"]
    sub["questions"][3]["type"] = "slider"
    sub["questions"][4]["options"] = []
    sub["questions"][4]["type"] = "radio"
    sub["questions"][5]["category"] = "somewhere-else"
    structure["categories"][1]["total_questions"] = 999

    res = validation.validate_structure(structure)
    codes = _codes(res["errors"])
    assert "DUPLICATE_QUESTION_ID" in codes
    assert "DUPLICATE_QUESTION_NUMBER" in codes
    assert "INVALID_QUESTION_TYPE" in codes
    assert "MISSING_QUESTION_OPTIONS" in codes
    assert "QUESTION_COUNT_MISMATCH" in codes
    assert "CATEGORY_MISMATCH" in _codes(res["warnings"])
    assert res["is_valid"] is False


def test_structure_header_checks():
    res = validation.validate_structure({"version": "", "assessment_type": "OTHER", "categories": None})
    assert _codes(res["errors"]) == ["MISSING_VERSION", "INVALID_TYPE", "MISSING_CATEGORIES"]

    structure = get_questionnaire("MIGRATION")
    structure["categories"].append(copy.deepcopy(structure["categories"][0]))
    res = validation.validate_structure(structure)
    assert "DUPLICATE_CATEGORY_ID" in _codes(res["errors"])
    assert "UNEXPECTED_CATEGORY_COUNT" in _codes(res["warnings"])


def test_malformed_entries_are_reported_not_raised():
    structure = get_questionnaire("EXPLORATORY")
    structure["categories"][0]["subcategories"].append("oops")
    structure["categories"][1]["subcategories"][0]["questions"].append(None)
    structure["categories"][2]["subcategories"][0]["questions"][0]["number"] = {"n": 1}
    structure["categories"][3]["subcategories"] = "none"
    structure["categories"].append(["not", "a", "category"])

    res = validation.validate_structure(structure)
    codes = _codes(res["errors"])
    assert codes.count("INVALID_SUBCATEGORY") == 2
    assert codes.count("INVALID_QUESTION") == 2
    assert "INVALID_CATEGORY" in codes
    assert res["is_valid"] is False
    assert structure["categories"][0]["id"] in res["completion_status"]["category_completions"]


def test_response_format_checks():
    structure = get_questionnaire("EXPLORATORY")
    responses = {
        "use-case-discovery": {
            "q1-1-2": "Not an option",
            "unknown-q": "hello",
        },
        "no-such-category": {"x": 1},
        "data-readiness": "not a map",
    }
    res = validation.validate_responses(structure, responses)
    assert "INVALID_OPTION_VALUE" in _codes(res["errors"])
    assert "INVALID_CATEGORY_RESPONSES" in _codes(res["errors"])
    warnings = _codes(res["warnings"])
    assert "UNKNOWN_QUESTION" in warnings
    assert "UNKNOWN_CATEGORY" in warnings
    assert "MISSING_REQUIRED_RESPONSE" in warnings


def test_checkbox_values_must_come_from_options():
    structure = get_questionnaire("EXPLORATORY")
    checkbox = next(
        q for c in structure["categories"] for s in c["subcategories"] for q in s["questions"]
        if q["type"] == "checkbox"
    )
    cat = checkbox["category"]
    bad_list = validation.validate_before_save(structure, {cat: {checkbox["id"]: [checkbox["options"][0], "nope"]}})
    assert _codes(bad_list["errors"]) == ["INVALID_CHECKBOX_VALUE"]
    bad_scalar = validation.validate_before_save(structure, {cat: {checkbox["id"]: "nope"}})
    assert _codes(bad_scalar["errors"]) == ["INVALID_CHECKBOX_FORMAT"]
    ok = validation.validate_before_save(structure, {cat: {checkbox["id"]: checkbox["options"][:2]}})
    assert ok["errors"] == []


def test_number_format():
    question = {"id": "n1", "number": "Q9.1", "type": "number"}
    assert validation._check_answer_format(question, "12.5", "c") is None
    assert validation._check_answer_format(question, 3, "c") is None
    assert validation._check_answer_format(question, "abc", "c")["code"] == "INVALID_NUMBER_FORMAT"
    assert validation._check_answer_format(question, "nan", "c")["code"] == "INVALID_NUMBER_FORMAT"


@pytest.mark.parametrize("value", ["-4", " 7 ", "1e3", ".5", "2.", 0, -1.5])
def test_number_format_accepts_plain_decimals(value):
    question = {"id": "n1", "number": "Q9.1", "type": "number"}
    assert validation._check_answer_format(question, value, "c") is None


@pytest.mark.parametrize("value", ["inf", "-Infinity", "1_000", "1e999", "0x10", "1,5", float("inf"), True, [1]])
def test_number_format_rejects_non_finite_and_loose_forms(value):
    question = {"id": "n1", "number": "Q9.1", "type": "number"}
    assert validation._check_answer_format(question, value, "c")["code"] == "INVALID_NUMBER_FORMAT"


def test_validate_before_save_ignores_missing_required():
    structure = get_questionnaire("EXPLORATORY")
    res = validation.validate_before_save(structure, {"use-case-discovery": {"q1-1-1": "Reduce call handling time"}})
    assert res["errors"] == []
    assert res["warnings"] == []


def test_completion_lists_first_three_missing(answers_for):
    structure = get_questionnaire("EXPLORATORY")
    res = validation.validate_completion(structure, {})
    assert res["is_valid"] is False
    incomplete = [e for e in res["errors"] if e["code"] == "INCOMPLETE_REQUIRED_QUESTIONS"]
    assert len(incomplete) == 1
    assert incomplete[0]["message"].startswith("72 required questions not answered: Q1.1 - ")
    assert incomplete[0]["message"].endswith("...")
    assert _codes(res["warnings"]).count("INCOMPLETE_CATEGORY") == 4
    assert "INCOMPLETE_ASSESSMENT" in _codes(res["warnings"])

    full = {cid: answers_for("EXPLORATORY", cid) for cid in
            ("use-case-discovery", "data-readiness", "compliance-integration", "business-value-roi")}
    res = validation.validate_completion(structure, full)
    assert res["is_valid"] is True
    assert res["completion_status"]["overall_completion"] == 100


def test_category_validation_is_scoped(answers_for):
    structure = get_questionnaire("EXPLORATORY")
    responses = {"business-value-roi": answers_for("EXPLORATORY", "business-value-roi")}
    res = validation.validate_category(structure, responses, "business-value-roi")
    assert res["is_valid"] is True
    assert res["errors"] == []

    res = validation.validate_category(structure, responses, "data-readiness")
    assert res["is_valid"] is False
    assert res["errors"][0]["category"] == "data-readiness"


def test_summary_counts():
    structure = get_questionnaire("EXPLORATORY")
    summary = validation.validation_summary(structure, {"use-case-discovery": {"q1-1-2": "bogus"}})
    assert summary["overall"]["is_valid"] is False
    assert summary["overall"]["error_count"] == 2  # bad option + incomplete required
    assert summary["overall"]["warning_count"] > 0
    assert summary["questionnaire"]["is_valid"] is True


def test_responses_hash_is_order_independent():
    a = validation.responses_hash({"x": {"a": 1, "b": 2}})
    b = validation.responses_hash({"x": {"b": 2, "a": 1}})
    assert a == b
    assert a != validation.responses_hash({"x": {"a": 1}})
