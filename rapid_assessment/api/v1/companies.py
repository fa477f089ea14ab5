# rapid_assessment/api/v1/companies.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from rapid_assessment.api.v1.auth import get_current_user
from rapid_assessment.models.company import CompanyCreate, CompanyOut, CompanyUpdate
from rapid_assessment.repositories import assessments as assessment_repo
from rapid_assessment.repositories import companies as company_repo

router = APIRouter(prefix="/companies", tags=["companies"], dependencies=[Depends(get_current_user)])

@router.get("")
async def list_companies_route(q: Optional[str] = Query(None, max_length=100),
                               limit: int = Query(50, ge=1, le=200), skip: int = Query(0, ge=0)):
    rows = await company_repo.list_companies(q, limit=limit, skip=skip)
    return {"items": [CompanyOut(**r).model_dump() for r in rows], "count": len(rows)}

@router.post("", status_code=201, response_model=CompanyOut)
async def create_company_route(payload: CompanyCreate):
    return await company_repo.create_company(payload)

@router.get("/{company_id}", response_model=CompanyOut)
async def get_company_route(company_id: str):
    doc = await company_repo.get_company(company_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Company not found")
    return doc

@router.put("/{company_id}", response_model=CompanyOut)
async def update_company_route(company_id: str, payload: CompanyUpdate):
    doc = await company_repo.update_company(company_id, payload)
    if not doc:
        raise HTTPException(status_code=404, detail="Company not found")
    return doc

@router.delete("/{company_id}")
async def delete_company_route(company_id: str):
    counts = await company_repo.delete_company(company_id)
    if counts is None:
        raise HTTPException(status_code=404, detail="Not found or already deleted")
    return {"deleted": True, **counts}

@router.get("/{company_id}/assessments")
async def list_company_assessments_route(company_id: str, limit: int = Query(50, ge=1, le=200),
                                         skip: int = Query(0, ge=0)):
    if not await company_repo.get_company(company_id):
        raise HTTPException(status_code=404, detail="Company not found")
    rows = await assessment_repo.list_assessments(company_id=company_id, limit=limit, skip=skip)
    return {"items": rows, "count": len(rows)}
