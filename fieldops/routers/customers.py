from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session

from fieldops.deps import get_company_context, get_scoped_db
from fieldops.models.customer import Customer
from fieldops.models.invoice import Invoice
from fieldops.models.job import Job
from fieldops.services.company_context import (
    CompanyContext,
    company_scope,
    require_company_id,
    validate_company_ownership,
)

router = APIRouter(prefix="/api/customers", tags=["customers"])


class CustomerPayload(BaseModel):
    company_name: Optional[str] = None
    source: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    physical_address: Optional[str] = None
    postal_address: Optional[str] = None
    billing_contact: Optional[str] = None
    pricing_tier: Optional[str] = None
    payment_terms: Optional[str] = None
    card_payment_fee: Optional[str] = None
    notes: Optional[str] = None


def serialize_customer(customer: Customer) -> dict:
    return {
        "id": customer.id,
        "company_id": customer.company_id,
        "company_name": customer.company_name,
        "source": customer.source,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "title": customer.title,
        "email": customer.email,
        "phone": customer.phone,
        "physical_address": customer.physical_address,
        "postal_address": customer.postal_address,
        "billing_contact": customer.billing_contact,
        "pricing_tier": customer.pricing_tier,
        "payment_terms": customer.payment_terms,
        "card_payment_fee": customer.card_payment_fee,
        "notes": customer.notes,
        "created_at": customer.created_at.isoformat() if customer.created_at else None,
        "updated_at": customer.updated_at.isoformat() if customer.updated_at else None,
    }


def _get_customer(db: Session, customer_id: int, context: CompanyContext) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    return validate_company_ownership(customer, context, detail="Customer not found")


@router.get("")
def list_customers(
    q: Optional[str] = None,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    query = company_scope(db.query(Customer), Customer, context)
    if q and q.strip():
        term = f"%{q.strip()}%"
        query = query.filter(
            or_(
                Customer.company_name.ilike(term),
                Customer.first_name.ilike(term),
                Customer.last_name.ilike(term),
                Customer.email.ilike(term),
                Customer.phone.ilike(term),
            )
        )
    customers = query.order_by(Customer.company_name.asc(), Customer.id.asc()).all()
    return [serialize_customer(customer) for customer in customers]


@router.get("/{customer_id}")
def get_customer(
    customer_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    return serialize_customer(_get_customer(db, customer_id, context))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerPayload,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    company_id = require_company_id(context)
    company_name = (payload.company_name or "").strip()
    if not company_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="company_name is required")

    data = {key: value for key, value in payload.model_dump(exclude={"company_name"}).items() if value is not None}
    customer = Customer(company_id=company_id, company_name=company_name, **data)
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return serialize_customer(customer)


@router.put("/{customer_id}")
def update_customer(
    customer_id: int,
    payload: CustomerPayload,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    customer = _get_customer(db, customer_id, context)
    changes = payload.model_dump(exclude_unset=True)

    if "company_name" in changes:
        company_name = (changes.pop("company_name") or "").strip()
        if not company_name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="company_name cannot be empty")
        customer.company_name = company_name

    for field, value in changes.items():
        if field in {"pricing_tier", "payment_terms", "card_payment_fee"} and value is None:
            continue
        setattr(customer, field, value)

    db.commit()
    db.refresh(customer)
    return serialize_customer(customer)


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    customer = _get_customer(db, customer_id, context)
    if db.query(Invoice.id).filter(Invoice.customer_id == customer.id).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Customer has invoices and cannot be deleted",
        )
    # jobs keep their history; they just lose the customer link
    db.query(Job).filter(Job.customer_id == customer.id).update({Job.customer_id: None}, synchronize_session=False)
    db.delete(customer)
    db.commit()
    return {"ok": True}
