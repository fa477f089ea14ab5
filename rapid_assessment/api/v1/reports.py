# rapid_assessment/api/v1/reports.py
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse

from rapid_assessment.api.v1.auth import get_current_user
from rapid_assessment.models.report import (
    ReportGenerate,
    ReportListItem,
    ReportOut,
    ReportRequestCreate,
    ReportRequestOut,
)
from rapid_assessment.repositories import reports as report_repo
from rapid_assessment.services import reports as report_service

router = APIRouter(prefix="/reports", tags=["reports"], dependencies=[Depends(get_current_user)])

@router.get("")
async def list_reports_route(company_id: Optional[str] = Query(None), assessment_id: Optional[str] = Query(None),
                             limit: int = Query(50, ge=1, le=200), skip: int = Query(0, ge=0)):
    rows = await report_repo.list_reports(company_id, assessment_id, limit=limit, skip=skip)
    return {"items": [ReportListItem(**r).model_dump() for r in rows], "count": len(rows)}

@router.post("/generate", status_code=201, response_model=ReportOut)
async def generate_report_route(payload: ReportGenerate):
    return await report_service.generate_report(payload.assessment_id, payload.company_id, payload.regenerate)

@router.post("/requests", status_code=202, response_model=ReportRequestOut)
async def create_report_request_route(payload: ReportRequestCreate, background_tasks: BackgroundTasks):
    req = await report_service.request_report(payload.assessment_id, payload.company_id)
    background_tasks.add_task(report_service.process_report_request, req["id"])
    return req

@router.get("/requests/{request_id}", response_model=ReportRequestOut)
async def get_report_request_route(request_id: str):
    req = await report_repo.get_report_request(request_id)
    if not req:
        raise HTTPException(status_code=404, detail="Report request not found")
    return req

@router.post("/requests/{request_id}/retry", status_code=202, response_model=ReportRequestOut)
async def retry_report_request_route(request_id: str, background_tasks: BackgroundTasks):
    req = await report_service.retry_report_request(request_id)
    background_tasks.add_task(report_service.process_report_request, req["id"])
    return req

@router.get("/{report_id}", response_model=ReportOut)
async def get_report_route(report_id: str):
    doc = await report_repo.get_report(report_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Report not found")
    return doc

@router.get("/{report_id}/html", response_class=HTMLResponse)
async def get_report_html_route(report_id: str):
    doc = await report_repo.get_report(report_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Report not found")
    return HTMLResponse(content=doc["html_content"])

@router.delete("/{report_id}")
async def delete_report_route(report_id: str):
    ok = await report_repo.delete_report(report_id)
    if not ok:
        raise HTTPException(status_code=404, detail="Not found or already deleted")
    return {"deleted": True}
