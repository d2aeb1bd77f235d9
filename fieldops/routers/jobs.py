from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from fieldops.deps import get_company_context, get_current_user, get_scoped_db, require_role
from fieldops.models.customer import Customer
from fieldops.models.invoice import Invoice
from fieldops.models.job import Job
from fieldops.models.job_activity import JobActivity
from fieldops.models.job_assignee import JobAssignee
from fieldops.models.job_financials import JobFinancials
from fieldops.models.user import User
from fieldops.services.activity import log_job_activity, resolve_actor_name
from fieldops.services.company_context import (
    CompanyContext,
    company_scope,
    require_company_id,
    validate_company_ownership,
)
from fieldops.services.phase_mapper import (
    VALID_PHASES,
    JobPhase,
    aliases_for_status,
    map_status_to_phase,
    normalize_job_status,
    parse_phase,
    phase_description,
    phase_label,
    status_label,
)
from fieldops.services.users import serialize_user

router = APIRouter(prefix="/api/jobs", tags=["jobs"])

logger = logging.getLogger(__name__)


class JobCreate(BaseModel):
    title: str = Field(..., min_length=1)
    status: str = "new"
    customer_id: Optional[int] = None
    client: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    color: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class JobUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    status: Optional[str] = None
    customer_id: Optional[int] = None
    client: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    color: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None


class AssignmentPayload(BaseModel):
    employee_id: int


def serialize_job(job: Job) -> dict:
    return {
        "id": job.id,
        "company_id": job.company_id,
        "customer_id": job.customer_id,
        "title": job.title,
        "client": job.client,
        "address": job.address,
        "notes": job.notes,
        "status": job.status,
        "phase": job.phase,
        "color": job.color,
        "contact_name": job.contact_name,
        "contact_email": job.contact_email,
        "contact_phone": job.contact_phone,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "updated_at": job.updated_at.isoformat() if job.updated_at else None,
    }


def _describe_status(raw_status: str) -> str:
    canonical = normalize_job_status(raw_status)
    return status_label(canonical) if canonical is not None else raw_status


def _get_job(db: Session, job_id: int, context: CompanyContext) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    return validate_company_ownership(job, context, detail="Job not found")


def _check_customer(db: Session, customer_id: Optional[int], context: CompanyContext) -> None:
    if customer_id is None:
        return
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    validate_company_ownership(customer, context, detail="Customer not found")


@router.get("")
def list_jobs(
    phase: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    query = company_scope(db.query(Job), Job, context)
    cleaned_status = func.lower(func.trim(Job.status))

    if phase:
        parsed = parse_phase(phase)
        if parsed is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid phase. Expected one of: {', '.join(VALID_PHASES)}",
            )
        query = query.filter(Job.phase == parsed.value)

    if status_filter:
        canonical = normalize_job_status(status_filter)
        if canonical is None:
            query = query.filter(cleaned_status == status_filter.strip().lower())
        else:
            query = query.filter(cleaned_status.in_(aliases_for_status(canonical)))

    jobs = query.order_by(Job.created_at.desc(), Job.id.desc()).all()
    return [serialize_job(job) for job in jobs]


@router.get("/phase-summary")
def phase_summary(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    """Job counts per phase for the dashboard gauges."""
    rows = (
        company_scope(db.query(Job.status, func.count(Job.id)), Job, context)
        .group_by(Job.status)
        .all()
    )
    counts: Counter = Counter()
    for raw_status, count in rows:
        counts[map_status_to_phase(raw_status)] += count

    return {
        "phases": [
            {
                "phase": phase.value,
                "label": phase_label(phase),
                "description": phase_description(phase),
                "count": counts.get(phase, 0),
            }
            for phase in JobPhase
        ],
        "total": sum(counts.values()),
    }


@router.get("/{job_id}")
def get_job(
    job_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    return serialize_job(_get_job(db, job_id, context))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_job(
    payload: JobCreate,
    user: User = Depends(get_current_user),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    company_id = require_company_id(context)
    data = payload.model_dump()
    _check_customer(db, data.get("customer_id"), context)
    data["title"] = data["title"].strip()
    data["status"] = (data["status"] or "new").strip()

    job = Job(company_id=company_id, **data)
    job.phase = map_status_to_phase(job.status).value
    db.add(job)
    db.flush()

    log_job_activity(
        db,
        job=job,
        type="job_created",
        title=f"Job created ({_describe_status(job.status)})",
        user_name=resolve_actor_name(user),
    )
    db.commit()
    db.refresh(job)
    return serialize_job(job)


@router.put("/{job_id}")
def update_job(
    job_id: int,
    payload: JobUpdate,
    user: User = Depends(get_current_user),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    job = _get_job(db, job_id, context)
    changes = payload.model_dump(exclude_unset=True)
    _check_customer(db, changes.get("customer_id"), context)

    new_status = changes.pop("status", None)
    for field, value in changes.items():
        if field == "title" and value is None:
            continue
        setattr(job, field, value)

    if new_status is not None and new_status.strip() and new_status.strip() != job.status:
        old_status = job.status
        job.status = new_status.strip()
        job.phase = map_status_to_phase(job.status).value
        log_job_activity(
            db,
            job=job,
            type="status_change",
            title=f"Status changed from {_describe_status(old_status)} to {_describe_status(job.status)}",
            user_name=resolve_actor_name(user),
        )

    db.commit()
    db.refresh(job)
    return serialize_job(job)


@router.delete("/{job_id}")
def delete_job(
    job_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    job = _get_job(db, job_id, context)

    has_invoices = db.query(Invoice.id).filter(Invoice.job_id == job.id).first() is not None
    if has_invoices:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Job has invoices and cannot be deleted",
        )

    company_id = job.company_id
    db.query(JobActivity).filter(JobActivity.job_id == job.id).delete(synchronize_session=False)
    db.query(JobAssignee).filter(JobAssignee.job_id == job.id).delete(synchronize_session=False)
    db.query(JobFinancials).filter(JobFinancials.job_id == job.id).delete(synchronize_session=False)
    db.delete(job)
    db.commit()
    logger.info("job deleted id=%s company_id=%s", job_id, company_id)
    return {"ok": True}


@router.get("/{job_id}/activity")
def job_activity(
    job_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    job = _get_job(db, job_id, context)
    entries = (
        db.query(JobActivity)
        .filter(JobActivity.job_id == job.id)
        .order_by(JobActivity.created_at.desc(), JobActivity.id.desc())
        .all()
    )
    return [
        {
            "id": entry.id,
            "type": entry.type,
            "title": entry.title,
            "user_name": entry.user_name,
            "created_at": entry.created_at.isoformat() if entry.created_at else None,
        }
        for entry in entries
    ]


def _get_employee(db: Session, job: Job, employee_id: int) -> User:
    employee = (
        db.query(User)
        .filter(User.id == employee_id, User.company_id == job.company_id, User.active.is_(True))
        .first()
    )
    if employee is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
    return employee


@router.get("/{job_id}/assignees")
def list_assignees(
    job_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    job = _get_job(db, job_id, context)
    users = (
        db.query(User)
        .join(JobAssignee, JobAssignee.user_id == User.id)
        .filter(JobAssignee.job_id == job.id)
        .order_by(JobAssignee.created_at.asc(), JobAssignee.id.asc())
        .all()
    )
    return [serialize_user(user) for user in users]


@router.put("/{job_id}/assign")
def assign_employee(
    job_id: int,
    payload: AssignmentPayload,
    user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    """Assign an employee of the job's company. Assigning twice is a no-op."""
    job = _get_job(db, job_id, context)
    employee = _get_employee(db, job, payload.employee_id)

    existing = (
        db.query(JobAssignee)
        .filter(JobAssignee.job_id == job.id, JobAssignee.user_id == employee.id)
        .first()
    )
    if existing is None:
        db.add(JobAssignee(company_id=job.company_id, job_id=job.id, user_id=employee.id))
        log_job_activity(
            db,
            job=job,
            type="employee_assigned",
            title=f"{employee.full_name or employee.email} assigned",
            user_name=resolve_actor_name(user),
        )
        db.commit()
    return {"ok": True}


@router.put("/{job_id}/unassign", status_code=status.HTTP_204_NO_CONTENT)
def unassign_employee(
    job_id: int,
    payload: AssignmentPayload,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    job = _get_job(db, job_id, context)
    db.query(JobAssignee).filter(
        JobAssignee.job_id == job.id,
        JobAssignee.user_id == payload.employee_id,
    ).delete(synchronize_session=False)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
