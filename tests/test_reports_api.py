# tests/test_reports_api.py
import httpx
import pytest
from unittest.mock import AsyncMock

from rapid_assessment.core.config import settings
from rapid_assessment.core.exceptions import ReportGenerationError
from rapid_assessment.services import llm_adapter


@pytest.mark.asyncio
async def test_report_requires_completed_assessment(client, exploratory):
    r = await client.post("/api/v1/reports/generate", json={"assessment_id": exploratory["id"]})
    assert r.status_code == 400
    assert r.json()["code"] == "ASSESSMENT_NOT_COMPLETED"

    r = await client.post("/api/v1/reports/generate", json={"assessment_id": "65f000000000000000000000"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_generate_view_and_delete_report(client, company, completed_assessment):
    aid = completed_assessment["id"]
    r = await client.post("/api/v1/reports/generate", json={"assessment_id": aid, "company_id": company["id"]})
    assert r.status_code == 201
    report = r.json()
    assert report["company_name"] == "Acme Corp"
    assert report["assessment_type"] == "EXPLORATORY"
    assert report["generated_by"] == "mock-report-model"
    assert report["metadata"]["model"] == "mock-report-model"
    assert "Acme Corp" in report["html_content"]
    assert f"Report ID: {aid}" in report["html_content"]

    dup = await client.post("/api/v1/reports/generate", json={"assessment_id": aid})
    assert dup.status_code == 409
    assert dup.json()["code"] == "REPORT_EXISTS"

    regen = await client.post("/api/v1/reports/generate", json={"assessment_id": aid, "regenerate": True})
    assert regen.status_code == 201
    assert regen.json()["id"] == report["id"]

    page = await client.get(f"/api/v1/reports/{report['id']}/html")
    assert page.status_code == 200
    assert page.headers["content-type"].startswith("text/html")
    assert page.text.startswith("<!DOCTYPE html>")

    listed = (await client.get("/api/v1/reports", params={"company_id": company["id"]})).json()
    assert listed["count"] == 1
    assert "html_content" not in listed["items"][0]

    assert (await client.get(f"/api/v1/reports/{report['id']}")).status_code == 200
    assert (await client.get(f"/api/v1/assessments/{aid}/report")).json()["id"] == report["id"]

    assert (await client.delete(f"/api/v1/reports/{report['id']}")).json() == {"deleted": True}
    assert (await client.get(f"/api/v1/reports/{report['id']}")).status_code == 404
    assert (await client.delete(f"/api/v1/reports/{report['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_company_mismatch_is_not_found(client, completed_assessment):
    other = (await client.post("/api/v1/companies", json={"name": "Initech"})).json()
    r = await client.post("/api/v1/reports/generate", json={
        "assessment_id": completed_assessment["id"], "company_id": other["id"],
    })
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_upstream_failure_status_is_surfaced(client, completed_assessment, monkeypatch):
    monkeypatch.setattr(llm_adapter, "complete",
                        AsyncMock(side_effect=ReportGenerationError("Rate limit exceeded", status_code=429)))
    r = await client.post("/api/v1/reports/generate", json={"assessment_id": completed_assessment["id"]})
    assert r.status_code == 429
    assert r.json()["detail"] == "Rate limit exceeded"
    assert (await client.get("/api/v1/reports")).json()["count"] == 0


@pytest.mark.asyncio
async def test_unconfigured_http_model_is_reported(client, completed_assessment, monkeypatch):
    monkeypatch.setattr(settings, "LLM_ADAPTER", "http")
    monkeypatch.setattr(settings, "LLM_HTTP_URL", None)
    r = await client.post("/api/v1/reports/generate", json={"assessment_id": completed_assessment["id"]})
    assert r.status_code == 500
    assert r.json()["code"] == "LLM_NOT_CONFIGURED"


@pytest.mark.asyncio
@pytest.mark.parametrize("reply, status, code", [
    (httpx.Response(429), 429, "LLM_THROTTLED"),
    (httpx.Response(502), 502, "LLM_BAD_RESPONSE"),
    (httpx.ConnectTimeout("timed out"), 503, "LLM_UNREACHABLE"),
])
async def test_http_model_failures_map_to_statuses(client, completed_assessment, llm_service, monkeypatch,
                                                   reply, status, code):
    monkeypatch.setattr(settings, "LLM_ADAPTER", "http")
    llm_service(reply)
    r = await client.post("/api/v1/reports/generate", json={"assessment_id": completed_assessment["id"]})
    assert r.status_code == status
    assert r.json()["code"] == code
    assert (await client.get("/api/v1/reports")).json()["count"] == 0

@pytest.mark.asyncio
async def test_async_report_request(client, completed_assessment):
    aid = completed_assessment["id"]
    r = await client.post("/api/v1/reports/requests", json={"assessment_id": aid})
    assert r.status_code == 202
    assert r.json()["status"] == "PENDING"
    request_id = r.json()["id"]

    # background task has run by the time the transport returns
    req = (await client.get(f"/api/v1/reports/requests/{request_id}")).json()
    assert req["status"] == "COMPLETED"
    assert req["report_id"]
    assert req["completed_at"] is not None

    report = await client.get(f"/api/v1/reports/{req['report_id']}")
    assert report.json()["assessment_id"] == aid

    r = await client.post(f"/api/v1/reports/requests/{request_id}/retry")
    assert r.status_code == 409
    assert r.json()["code"] == "REQUEST_NOT_FAILED"


@pytest.mark.asyncio
async def test_failed_request_can_be_retried(client, completed_assessment, monkeypatch):
    working = llm_adapter.complete
    monkeypatch.setattr(llm_adapter, "complete",
                        AsyncMock(side_effect=ReportGenerationError("Bedrock service error")))

    r = await client.post("/api/v1/reports/requests", json={"assessment_id": completed_assessment["id"]})
    request_id = r.json()["id"]
    req = (await client.get(f"/api/v1/reports/requests/{request_id}")).json()
    assert req["status"] == "FAILED"
    assert req["error_message"] == "Bedrock service error"
    assert req["retry_count"] == 1

    monkeypatch.setattr(llm_adapter, "complete", working)
    r = await client.post(f"/api/v1/reports/requests/{request_id}/retry")
    assert r.status_code == 202
    req = (await client.get(f"/api/v1/reports/requests/{request_id}")).json()
    assert req["status"] == "COMPLETED"
    assert req["error_message"] is None


@pytest.mark.asyncio
async def test_unknown_request(client):
    assert (await client.get("/api/v1/reports/requests/65f000000000000000000000")).status_code == 404
    assert (await client.post("/api/v1/reports/requests/65f000000000000000000000/retry")).status_code == 404
