# tests/test_questionnaire.py
import pytest

from rapid_assessment.repositories import questionnaires as questionnaire_repo
from rapid_assessment.services import questionnaire


def test_bundled_paths():
    exploratory = questionnaire.get_questionnaire("EXPLORATORY")
    migration = questionnaire.get_questionnaire("MIGRATION")
    assert exploratory["version"] == "3.0"
    assert exploratory["total_questions"] == 110
    assert migration["total_questions"] == 162
    assert questionnaire.category_ids(exploratory) == [
        "use-case-discovery", "data-readiness", "compliance-integration", "business-value-roi",
    ]
    assert questionnaire.category_ids(migration)[1] == "current-system-assessment"
    assert len(questionnaire.all_questions(migration)) == 162


def test_get_questionnaire_returns_copies():
    first = questionnaire.get_questionnaire("EXPLORATORY")
    first["categories"].clear()
    assert len(questionnaire.get_questionnaire("EXPLORATORY")["categories"]) == 4


def test_lookups():
    structure = questionnaire.get_questionnaire("MIGRATION")
    category = questionnaire.get_category(structure, "business-value-roi")
    assert category["title"] == "Business Value & ROI"
    assert questionnaire.get_category(structure, "model-evaluation") is None
    assert questionnaire.get_subcategory(structure, "use-case-discovery", "business-context")["question_count"] == 12
    assert questionnaire.find_question(category, "does-not-exist") is None
    assert questionnaire.neighbours(structure, "use-case-discovery") == (None, "current-system-assessment")
    assert questionnaire.neighbours(structure, "business-value-roi") == ("compliance-integration", None)


def test_unknown_type_rejected():
    with pytest.raises(ValueError):
        questionnaire.get_questionnaire("HYBRID")


@pytest.mark.asyncio
async def test_initialize_defaults_is_idempotent():
    seeded = await questionnaire.initialize_default_questionnaires()
    assert seeded == ["EXPLORATORY", "MIGRATION"]
    assert await questionnaire.initialize_default_questionnaires() == []
    assert await questionnaire.initialize_default_questionnaires(force=True) == ["EXPLORATORY", "MIGRATION"]

    versions = await questionnaire_repo.list_versions()
    assert {(v["assessment_type"], v["version"]) for v in versions} == {("EXPLORATORY", "3.0"), ("MIGRATION", "3.0")}
    assert all("categories" not in v for v in versions)


@pytest.mark.asyncio
async def test_active_version_wins_over_bundled():
    custom = questionnaire.get_questionnaire("EXPLORATORY")
    custom["version"] = "3.1"
    custom["categories"] = custom["categories"][:1]
    await questionnaire_repo.store_questionnaire(custom, active=True)

    active = await questionnaire.get_active_questionnaire("EXPLORATORY")
    assert active["version"] == "3.1"
    assert len(active["categories"]) == 1

    await questionnaire_repo.set_active("EXPLORATORY", "3.1", False)
    fallback = await questionnaire.get_active_questionnaire("EXPLORATORY")
    assert fallback["version"] == "3.0"
