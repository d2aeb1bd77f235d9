from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fieldops.deps import get_company_context, get_scoped_db, require_role
from fieldops.models.company import Company
from fieldops.models.customer import Customer
from fieldops.models.invoice import Invoice
from fieldops.models.job import Job
from fieldops.models.user import User
from fieldops.services import xero
from fieldops.services.activity import log_job_activity, resolve_actor_name
from fieldops.services.company_context import CompanyContext, company_scope, validate_company_ownership
from fieldops.services.invoice_pdf import render_invoice_pdf
from fieldops.services.invoices import (
    approve_invoice,
    create_invoice,
    invoice_margins,
    record_payment,
    send_invoice,
    serialize_invoice,
    summarize_invoices,
    update_invoice,
    void_invoice,
)
from fieldops.services.line_items import AMOUNT_MAX, PERCENT_MAX, PricingMode

router = APIRouter(prefix="/api", tags=["invoices"])

logger = logging.getLogger(__name__)


class LineItemPayload(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[Decimal] = Field(None, ge=0, le=AMOUNT_MAX)
    cost: Optional[Decimal] = Field(None, ge=-AMOUNT_MAX, le=AMOUNT_MAX)
    price: Optional[Decimal] = Field(None, ge=-AMOUNT_MAX, le=AMOUNT_MAX)
    markup: Optional[Decimal] = Field(None, ge=0, le=PERCENT_MAX)
    tax: Optional[Decimal] = Field(None, ge=0, le=PERCENT_MAX)
    discount: Optional[Decimal] = Field(None, ge=0, le=100)


class InvoiceCreate(BaseModel):
    job_id: int
    customer_id: Optional[int] = None
    line_items: List[LineItemPayload] = Field(default_factory=list)
    pricing: PricingMode = PricingMode.FULL
    payment_period: Optional[str] = None
    card_payment_fee: Optional[str] = None
    notes: Optional[str] = None


class InvoiceUpdate(BaseModel):
    line_items: Optional[List[LineItemPayload]] = None
    payment_period: Optional[str] = None
    card_payment_fee: Optional[str] = None
    notes: Optional[str] = None
    letterhead: Optional[str] = None
    labour_discount: Optional[Decimal] = Field(None, ge=0, le=100)
    material_discount: Optional[Decimal] = Field(None, ge=0, le=100)
    material_markup: Optional[Decimal] = Field(None, ge=0, le=PERCENT_MAX)
    online_payments_enabled: Optional[bool] = None


class PaymentPayload(BaseModel):
    amount: Decimal


def _get_invoice(db: Session, invoice_id: int, context: CompanyContext) -> Invoice:
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    return validate_company_ownership(invoice, context, detail="Invoice not found")


def _job_title(db: Session, job_id: int) -> str:
    row = db.query(Job.title).filter(Job.id == job_id).first()
    return row[0] if row else ""


def _detail(db: Session, invoice: Invoice) -> dict:
    return {
        "invoice": serialize_invoice(invoice, job_name=_job_title(db, invoice.job_id), with_lines=True),
        "margins": invoice_margins(invoice),
    }


@router.get("/invoices")
def list_invoices(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    rows = (
        company_scope(db.query(Invoice, Job.title), Invoice, context)
        .outerjoin(Job, Job.id == Invoice.job_id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .all()
    )
    invoices = [invoice for invoice, _ in rows]
    return {
        "invoices": [serialize_invoice(invoice, job_name=title) for invoice, title in rows],
        "summary": summarize_invoices(invoices),
        "has_history": bool(invoices),
    }


@router.get("/jobs/{job_id}/invoices")
def list_job_invoices(
    job_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    job = validate_company_ownership(db.query(Job).filter(Job.id == job_id).first(), context, detail="Job not found")
    invoices = (
        db.query(Invoice)
        .filter(Invoice.job_id == job.id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .all()
    )
    return [serialize_invoice(invoice, job_name=job.title) for invoice in invoices]


@router.get("/invoices/{invoice_id}")
def get_invoice(
    invoice_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    return _detail(db, _get_invoice(db, invoice_id, context))


@router.post("/invoices", status_code=status.HTTP_201_CREATED)
def create_invoice_endpoint(
    payload: InvoiceCreate,
    user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    job = validate_company_ownership(
        db.query(Job).filter(Job.id == payload.job_id).first(), context, detail="Job not found"
    )
    if payload.customer_id is not None:
        validate_company_ownership(
            db.query(Customer).filter(Customer.id == payload.customer_id).first(),
            context,
            detail="Customer not found",
        )

    invoice = create_invoice(
        db,
        job=job,
        line_items=[item.model_dump() for item in payload.line_items],
        mode=payload.pricing,
        customer_id=payload.customer_id,
        payment_period=payload.payment_period,
        card_payment_fee=payload.card_payment_fee,
        notes=payload.notes,
    )
    log_job_activity(
        db,
        job=job,
        type="invoice_created",
        title=f"Invoice {invoice.invoice_number} created",
        user_name=resolve_actor_name(user),
    )
    db.commit()
    db.refresh(invoice)
    return _detail(db, invoice)


@router.put("/invoices/{invoice_id}")
def update_invoice_endpoint(
    invoice_id: int,
    payload: InvoiceUpdate,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    invoice = _get_invoice(db, invoice_id, context)
    if invoice.status == "PAID" or invoice.type == "VOID":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Invoice can no longer be edited")

    changes = payload.model_dump(exclude_unset=True, exclude={"line_items"})
    line_items = None
    if payload.line_items is not None:
        line_items = [item.model_dump() for item in payload.line_items]

    update_invoice(invoice, changes, line_items)
    db.commit()
    db.refresh(invoice)
    return _detail(db, invoice)


@router.post("/invoices/{invoice_id}/approve")
def approve_invoice_endpoint(
    invoice_id: int,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    invoice = approve_invoice(_get_invoice(db, invoice_id, context))
    db.commit()
    db.refresh(invoice)
    return serialize_invoice(invoice, job_name=_job_title(db, invoice.job_id))


@router.post("/invoices/{invoice_id}/send")
def send_invoice_endpoint(
    invoice_id: int,
    user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    invoice = send_invoice(_get_invoice(db, invoice_id, context))
    job = db.query(Job).filter(Job.id == invoice.job_id).first()
    if job is not None:
        log_job_activity(
            db,
            job=job,
            type="invoice_sent",
            title=f"Invoice {invoice.invoice_number} sent",
            user_name=resolve_actor_name(user),
        )
    db.commit()
    db.refresh(invoice)
    return serialize_invoice(invoice, job_name=job.title if job else None)


@router.post("/invoices/{invoice_id}/void")
def void_invoice_endpoint(
    invoice_id: int,
    user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    invoice = void_invoice(_get_invoice(db, invoice_id, context))
    job = db.query(Job).filter(Job.id == invoice.job_id).first()
    if job is not None:
        log_job_activity(
            db,
            job=job,
            type="invoice_voided",
            title=f"Invoice {invoice.invoice_number} voided",
            user_name=resolve_actor_name(user),
        )
    db.commit()
    db.refresh(invoice)
    return serialize_invoice(invoice, job_name=job.title if job else None)


@router.post("/invoices/{invoice_id}/payments")
def record_payment_endpoint(
    invoice_id: int,
    payload: PaymentPayload,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    invoice = record_payment(_get_invoice(db, invoice_id, context), payload.amount)
    db.commit()
    db.refresh(invoice)
    return serialize_invoice(invoice, job_name=_job_title(db, invoice.job_id))


@router.delete("/invoices/{invoice_id}")
def delete_invoice(
    invoice_id: int,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    invoice = _get_invoice(db, invoice_id, context)
    if invoice.type != "DRAFT":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only draft invoices can be deleted")
    db.delete(invoice)
    db.commit()
    return {"ok": True}


@router.get("/invoices/{invoice_id}/pdf")
def invoice_pdf(
    invoice_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    invoice = _get_invoice(db, invoice_id, context)
    company = db.query(Company).filter(Company.id == invoice.company_id).first()
    job = db.query(Job).filter(Job.id == invoice.job_id).first()
    customer = None
    if invoice.customer_id is not None:
        customer = db.query(Customer).filter(Customer.id == invoice.customer_id).first()

    content = render_invoice_pdf(invoice, company=company, job=job, customer=customer)
    filename = f"{invoice.invoice_number or f'invoice-{invoice.id}'}.pdf"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


def contact_name_for(db: Session, invoice: Invoice) -> str:
    if invoice.customer_id is not None:
        customer = db.query(Customer).filter(Customer.id == invoice.customer_id).first()
        if customer is not None and customer.company_name:
            return customer.company_name
    job = db.query(Job).filter(Job.id == invoice.job_id).first()
    return (job.client if job is not None and job.client else "") or "Customer"


@router.post("/invoices/{invoice_id}/sync-xero")
def sync_invoice_to_xero(
    invoice_id: int,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    invoice = _get_invoice(db, invoice_id, context)
    connection = xero.get_connection(db, invoice.company_id)
    if connection is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Xero is not connected")

    try:
        xero.sync_invoice(connection, invoice, contact_name_for(db, invoice))
    except xero.XeroError as exc:
        db.commit()
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

    db.commit()
    db.refresh(invoice)
    return serialize_invoice(invoice, job_name=_job_title(db, invoice.job_id))
