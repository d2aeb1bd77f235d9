from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from fieldops.models.job import Job
from fieldops.models.job_financials import JobFinancials
from fieldops.services.line_items import AMOUNT_MAX, HUNDRED, ZERO, to_cents, to_decimal

logger = logging.getLogger(__name__)

FINANCIAL_INPUTS = ("labour_cost", "material_cost", "other_cost", "revenue")


def recalculate(financials: JobFinancials) -> JobFinancials:
    """Derive total cost, profit and margin (percent of revenue)."""
    labour = to_cents(to_decimal(financials.labour_cost))
    material = to_cents(to_decimal(financials.material_cost))
    other = to_cents(to_decimal(financials.other_cost))
    revenue = to_cents(to_decimal(financials.revenue))

    total_cost = labour + material + other
    profit = revenue - total_cost
    margin = ZERO
    if revenue > ZERO:
        margin = max(-AMOUNT_MAX, to_cents(profit / revenue * HUNDRED))

    financials.total_cost = total_cost
    financials.profit = profit
    financials.margin = margin
    return financials


def get_financials(db: Session, job: Job) -> Optional[JobFinancials]:
    return db.query(JobFinancials).filter(JobFinancials.job_id == job.id).first()


def create_financials(db: Session, job: Job, values: Mapping[str, Any]) -> JobFinancials:
    financials = JobFinancials(company_id=job.company_id, job_id=job.id)
    for field in FINANCIAL_INPUTS:
        setattr(financials, field, to_cents(to_decimal(values.get(field))))
    recalculate(financials)
    db.add(financials)
    db.flush()
    logger.info("[FINANCIALS] created job_id=%s profit=%s", job.id, financials.profit)
    return financials


def update_financials(financials: JobFinancials, changes: Mapping[str, Any]) -> JobFinancials:
    for field in FINANCIAL_INPUTS:
        if changes.get(field) is not None:
            setattr(financials, field, to_cents(to_decimal(changes[field])))
    return recalculate(financials)


def serialize_financials(financials: JobFinancials) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": financials.id, "job_id": financials.job_id}
    for field in (*FINANCIAL_INPUTS, "total_cost", "profit", "margin"):
        data[field] = float(to_decimal(getattr(financials, field)))
    data["created_at"] = financials.created_at.isoformat() if financials.created_at else None
    data["updated_at"] = financials.updated_at.isoformat() if financials.updated_at else None
    return data
