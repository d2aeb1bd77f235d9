from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fieldops.deps import get_company_context, get_scoped_db, require_role
from fieldops.models.job import Job
from fieldops.models.user import User
from fieldops.services.company_context import CompanyContext, validate_company_ownership
from fieldops.services.job_financials import (
    create_financials,
    get_financials,
    serialize_financials,
    update_financials,
)
from fieldops.services.line_items import AMOUNT_MAX

router = APIRouter(prefix="/api/jobs", tags=["job-financials"])


class FinancialsPayload(BaseModel):
    labour_cost: Optional[Decimal] = Field(None, ge=0, le=AMOUNT_MAX)
    material_cost: Optional[Decimal] = Field(None, ge=0, le=AMOUNT_MAX)
    other_cost: Optional[Decimal] = Field(None, ge=0, le=AMOUNT_MAX)
    revenue: Optional[Decimal] = Field(None, ge=0, le=AMOUNT_MAX)


def _get_job(db: Session, job_id: int, context: CompanyContext) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    return validate_company_ownership(job, context, detail="Job not found")


@router.get("/{job_id}/financials")
def read_financials(
    job_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    financials = get_financials(db, _get_job(db, job_id, context))
    if financials is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job financials not found")
    return serialize_financials(financials)


@router.post("/{job_id}/financials", status_code=status.HTTP_201_CREATED)
def create_job_financials(
    job_id: int,
    payload: FinancialsPayload,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    job = _get_job(db, job_id, context)
    if get_financials(db, job) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Job financials already exist")

    financials = create_financials(db, job, payload.model_dump())
    db.commit()
    db.refresh(financials)
    return serialize_financials(financials)


@router.put("/{job_id}/financials")
def update_job_financials(
    job_id: int,
    payload: FinancialsPayload,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    financials = get_financials(db, _get_job(db, job_id, context))
    if financials is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job financials not found")

    update_financials(financials, changes)
    db.commit()
    db.refresh(financials)
    return serialize_financials(financials)
