# tests/conftest.py
import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

from rapid_assessment.api.v1.auth import get_current_user
from rapid_assessment.core.config import settings
from rapid_assessment.db import mongo
from rapid_assessment.main import app
from rapid_assessment.services.llm_adapters import http_adapter
from rapid_assessment.services.questionnaire import category_questions, get_questionnaire
from rapid_assessment.services.validation_cache import KEY_PREFIX, validation_cache

TEST_USER = {"id": "test-user-id", "email": "analyst@acme.io"}


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch):
    """Every test gets a fresh in-memory MongoDB behind get_db()."""
    monkeypatch.setattr(mongo, "_mongo_client", AsyncMongoMockClient())
    return mongo.get_db()


@pytest.fixture(autouse=True)
def memory_validation_cache(monkeypatch):
    store = {}

    async def get(key):
        return store.get(key)

    async def set_(key, value, ttl=None):
        store[key] = value

    async def clear_assessment(assessment_id):
        keys = [k for k in store if k.startswith(f"{KEY_PREFIX}:{assessment_id}:")]
        for k in keys:
            del store[k]
        return len(keys)

    monkeypatch.setattr(validation_cache, "get", get)
    monkeypatch.setattr(validation_cache, "set", set_)
    monkeypatch.setattr(validation_cache, "clear_assessment", clear_assessment)
    return store


@pytest.fixture(autouse=True)
def mock_llm(monkeypatch):
    monkeypatch.setattr(settings, "LLM_ADAPTER", "mock")
    monkeypatch.setattr(settings, "LLM_ALLOW_FALLBACK", False)


class FakeLLMService:
    """MockTransport handler replaying canned replies; the last one repeats."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)


@pytest.fixture
def llm_service(monkeypatch):
    """llm_service(*replies) -> FakeLLMService wired behind the http adapter"""
    monkeypatch.setattr(settings, "LLM_HTTP_URL", "http://llm.test/complete")
    monkeypatch.setattr(settings, "LLM_API_KEY", "sk-test")
    monkeypatch.setattr(settings, "LLM_RETRIES", 2)
    monkeypatch.setattr(settings, "LLM_BACKOFF_FACTOR", 0)

    def install(*replies):
        service = FakeLLMService(replies)
        monkeypatch.setattr(http_adapter, "_client",
                            lambda: httpx.AsyncClient(transport=httpx.MockTransport(service)))
        return service
    return install


@pytest.fixture
def auth_override():
    """Auth is bypassed for API tests; test_auth.py exercises the real dependency."""
    app.dependency_overrides[get_current_user] = lambda: TEST_USER
    yield TEST_USER
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
async def client(auth_override):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


def _valid_answer(question):
    qtype = question["type"]
    options = question.get("options") or []
    if qtype in ("select", "radio"):
        return options[0]
    if qtype == "checkbox":
        return [options[0]]
    if qtype == "number":
        return 10
    return f"Answer to {question['number']}"


@pytest.fixture
def answers_for():
    """answers_for(assessment_type, category_id, required_only=True) -> {question_id: value}"""
    def build(assessment_type, category_id, required_only=True):
        structure = get_questionnaire(assessment_type)
        category = next(c for c in structure["categories"] if c["id"] == category_id)
        return {
            q["id"]: _valid_answer(q)
            for q in category_questions(category)
            if q["required"] or not required_only
        }
    return build


@pytest.fixture
async def company(client):
    r = await client.post("/api/v1/companies", json={"name": "Acme Corp", "description": "Test company"})
    assert r.status_code == 201
    return r.json()


@pytest.fixture
async def exploratory(client, company):
    r = await client.post("/api/v1/assessments", json={
        "name": "Exploratory Q3",
        "company_id": company["id"],
        "type": "EXPLORATORY",
    })
    assert r.status_code == 201
    return r.json()


@pytest.fixture
async def completed_assessment(client, exploratory, answers_for):
    aid = exploratory["id"]
    for category_id in ("use-case-discovery", "data-readiness", "compliance-integration", "business-value-roi"):
        r = await client.put(f"/api/v1/assessments/{aid}/responses", json={
            "category_id": category_id,
            "responses": answers_for("EXPLORATORY", category_id),
        })
        assert r.status_code == 200, r.text
    r = await client.post(f"/api/v1/assessments/{aid}/complete")
    assert r.status_code == 200, r.text
    return r.json()
