# rapid_assessment/services/reports.py
import html
import json
import logging
import re
import time
from datetime import datetime
from string import Template
from typing import Any, Dict, Optional

from rapid_assessment.core.config import settings
from rapid_assessment.core.exceptions import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    RapidAssessmentError,
)
from rapid_assessment.models.assessment import AssessmentStatus, AssessmentType
from rapid_assessment.models.report import ReportRequestStatus
from rapid_assessment.repositories import assessments as assessment_repo
from rapid_assessment.repositories import companies as company_repo
from rapid_assessment.repositories import reports as report_repo
from rapid_assessment.repositories.common import now
from rapid_assessment.services import llm_adapter

logger = logging.getLogger(__name__)

PATH_DESCRIPTIONS = {
    AssessmentType.EXPLORATORY.value: "Cloud Exploration Assessment",
    AssessmentType.MIGRATION.value: "Cloud Migration Assessment",
}

REPORT_SECTIONS = (
    "Executive Summary",
    "Current State Analysis",
    "Recommendations",
    "Risk Assessment",
    "Implementation Roadmap",
    "Next Steps",
)


def path_description(assessment_type: str) -> str:
    return PATH_DESCRIPTIONS.get(assessment_type, PATH_DESCRIPTIONS[AssessmentType.MIGRATION.value])


def _date(value) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    return now().date().isoformat()


def build_report_prompt(assessment: Dict[str, Any], company: Dict[str, Any]) -> str:
    completed_on = _date(assessment.get("completed_at") or assessment.get("updated_at"))
    sections = "\n".join(f"- {s}" for s in REPORT_SECTIONS)
    return f"""
You are an expert cloud consultant generating a comprehensive assessment report. Please create a detailed, professional report based on the following assessment data:

**Company Information:**
- Company Name: {company['name']}
- Assessment Type: {path_description(assessment.get('type'))}
- Assessment Name: {assessment.get('name')}
- Completion Date: {completed_on}

**Assessment Responses:**
{json.dumps(assessment.get('responses') or {}, indent=2, default=str)}

**Instructions:**
1. Create a comprehensive report that analyzes the assessment responses
2. Provide specific recommendations based on the company's current state and goals
3. Include risk assessments and mitigation strategies
4. Structure the report with clear sections and actionable insights
5. Use professional language suitable for executive presentation
6. Focus on practical, implementable recommendations
7. Include estimated timelines and resource requirements where appropriate

**Report Structure:**
{sections}

Please generate a detailed, professional report in markdown format that provides valuable insights and actionable recommendations for {company['name']}.
"""


_MD_RULES = (
    (re.compile(r"^### (.*)$", re.M), r"<h3>\1</h3>"),
    (re.compile(r"^## (.*)$", re.M), r"<h2>\1</h2>"),
    (re.compile(r"^# (.*)$", re.M), r"<h1>\1</h1>"),
    (re.compile(r"^[*-] (.*)$", re.M), r"<li>\1</li>"),
    (re.compile(r"\*\*(.+?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"\*(.+?)\*"), r"<em>\1</em>"),
)
_LIST_RUN = re.compile(r"(?:<li>.*?</li>\n?)+")


def markdown_to_html(content: str) -> str:
    """Minimal markdown for model output: headings, bullets, bold, emphasis, paragraphs."""
    text = html.escape((content or "").replace("\r\n", "\n").strip(), quote=False)
    for pattern, repl in _MD_RULES:
        text = pattern.sub(repl, text)
    text = _LIST_RUN.sub(lambda m: "<ul>" + m.group(0).rstrip("\n") + "</ul>\n", text)
    text = re.sub(r"\n{2,}", "</p><p>", text)
    return f"<p>{text}</p>"


_REPORT_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>$path_description Report - $company_name</title>
    <style>
        body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6; color: #333;
               max-width: 800px; margin: 0 auto; padding: 20px; background-color: #f9f9f9; }
        .report-container { background: white; padding: 40px; border-radius: 8px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }
        .header { border-bottom: 3px solid #2563eb; padding-bottom: 20px; margin-bottom: 30px; }
        .company-name { color: #2563eb; font-size: 2.5em; font-weight: bold; margin: 0; }
        .assessment-type { color: #6b7280; font-size: 1.2em; margin: 5px 0; }
        .report-date { color: #9ca3af; font-size: 0.9em; }
        h1 { color: #1f2937; border-bottom: 2px solid #e5e7eb; padding-bottom: 10px; margin-top: 30px; }
        h2 { color: #374151; margin-top: 25px; }
        h3 { color: #4b5563; margin-top: 20px; }
        ul { padding-left: 20px; }
        li { margin-bottom: 5px; }
        p { margin-bottom: 15px; text-align: justify; }
        strong { color: #1f2937; }
        .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; text-align: center;
                  color: #6b7280; font-size: 0.9em; }
    </style>
</head>
<body>
    <div class="report-container">
        <div class="header">
            <h1 class="company-name">$company_name</h1>
            <div class="assessment-type">$path_description</div>
            <div class="report-date">Generated on $generated_on</div>
        </div>

        <div class="content">
            $content
        </div>

        <div class="footer">
            <p>This report was generated using AI-powered analysis based on your assessment responses.</p>
            <p>Report ID: $report_id | Generated: $generated_on</p>
        </div>
    </div>
</body>
</html>
""")


def render_report_html(content_markdown: str, assessment: Dict[str, Any], company: Dict[str, Any],
                       generated_at: Optional[datetime] = None) -> str:
    generated_on = (generated_at or now()).strftime("%B %d, %Y")
    return _REPORT_TEMPLATE.substitute(
        path_description=html.escape(path_description(assessment.get("type"))),
        company_name=html.escape(company["name"]),
        generated_on=generated_on,
        content=markdown_to_html(content_markdown),
        report_id=html.escape(str(assessment["id"])),
    )


async def check_report_preconditions(assessment_id: str, company_id: Optional[str] = None):
    """Load and check the assessment and company a report would be built from."""
    assessment = await assessment_repo.get_assessment(assessment_id)
    if not assessment or (company_id and assessment.get("company_id") != company_id):
        raise NotFoundError("Assessment", assessment_id)
    if assessment.get("status") != AssessmentStatus.COMPLETED.value:
        raise InvalidRequestError("Assessment must be completed before generating report",
                                  code="ASSESSMENT_NOT_COMPLETED")
    company = await company_repo.get_company(assessment["company_id"])
    if not company:
        raise NotFoundError("Company", assessment["company_id"])
    return assessment, company


async def generate_report(assessment_id: str, company_id: Optional[str] = None,
                          regenerate: bool = False) -> Dict[str, Any]:
    assessment, company = await check_report_preconditions(assessment_id, company_id)
    if not regenerate and await report_repo.get_report_for_assessment(assessment_id):
        raise ConflictError("Report already exists for this assessment", code="REPORT_EXISTS")

    started = time.monotonic()
    result = await llm_adapter.complete(build_report_prompt(assessment, company),
                                        max_tokens=settings.REPORT_MAX_TOKENS)
    generated_at = now()
    duration_ms = int((time.monotonic() - started) * 1000)
    model = result.get("model") or settings.LLM_ADAPTER

    payload = {
        "assessment_id": assessment_id,
        "company_id": assessment["company_id"],
        "company_name": company["name"],
        "assessment_name": assessment.get("name"),
        "assessment_type": assessment.get("type"),
        "html_content": render_report_html(result.get("text", ""), assessment, company, generated_at),
        "generated_at": generated_at,
        "generated_by": model,
        "metadata": {
            "assessment_type": assessment.get("type"),
            "company_name": company["name"],
            "generation_duration_ms": duration_ms,
            "model": model,
        },
    }
    if regenerate:
        report = await report_repo.replace_report(payload)
    else:
        report = await report_repo.insert_report(payload)
    logger.info("report %s generated for assessment %s in %dms", report["id"], assessment_id, duration_ms)
    return report


async def request_report(assessment_id: str, company_id: Optional[str] = None) -> Dict[str, Any]:
    assessment, _ = await check_report_preconditions(assessment_id, company_id)
    return await report_repo.create_report_request(assessment_id, assessment["company_id"])


async def process_report_request(request_id: str) -> None:
    """
    Background task body. Never raises: the outcome is recorded on the
    request document.
    """
    request = await report_repo.update_report_request(
        request_id, {"status": ReportRequestStatus.PROCESSING.value, "error_message": None}
    )
    if not request:
        logger.warning("report request %s vanished before processing", request_id)
        return
    try:
        report = await generate_report(request["assessment_id"], request["company_id"], regenerate=True)
    except RapidAssessmentError as exc:
        logger.warning("report request %s failed: %s", request_id, exc.message)
        await _fail_request(request_id, exc.message)
        return
    except Exception as exc:
        logger.exception("report request %s failed", request_id)
        await _fail_request(request_id, str(exc) or exc.__class__.__name__)
        return
    await report_repo.update_report_request(request_id, {
        "status": ReportRequestStatus.COMPLETED.value,
        "completed_at": now(),
        "report_id": report["id"],
    })


async def _fail_request(request_id: str, message: str):
    await report_repo.update_report_request(
        request_id,
        {"status": ReportRequestStatus.FAILED.value, "completed_at": now(), "error_message": message},
        increment_retry=True,
    )


async def retry_report_request(request_id: str) -> Dict[str, Any]:
    request = await report_repo.get_report_request(request_id)
    if not request:
        raise NotFoundError("ReportRequest", request_id)
    if request["status"] != ReportRequestStatus.FAILED.value:
        raise ConflictError("Only failed report requests can be retried", code="REQUEST_NOT_FAILED")
    if request.get("retry_count", 0) >= settings.REPORT_MAX_RETRIES:
        raise ConflictError("Maximum report generation retries exceeded", code="RETRIES_EXHAUSTED")
    return await report_repo.update_report_request(request_id, {
        "status": ReportRequestStatus.PENDING.value,
        "completed_at": None,
    })
