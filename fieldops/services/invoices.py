from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from fieldops.core.config import INVOICE_NUMBER_PREFIX
from fieldops.models.invoice import Invoice, InvoiceLineItem
from fieldops.models.job import Job
from fieldops.services.line_items import (
    ZERO,
    LineItem,
    PricedLineItem,
    PricingMode,
    calculate_margins,
    calculate_totals,
    price_line_items,
    to_cents,
    to_decimal,
)

logger = logging.getLogger(__name__)
INVOICE_PREFIX = "[INVOICE]"

PAYMENT_PERIOD_DAYS: Dict[str, int] = {
    "DUE_ON_RECEIPT": 0,
    "7_DAYS": 7,
    "14_DAYS": 14,
    "30_DAYS": 30,
}
DEFAULT_PAYMENT_PERIOD = "14_DAYS"

_UPDATABLE_FIELDS = (
    "payment_period",
    "card_payment_fee",
    "notes",
    "letterhead",
    "labour_discount",
    "material_discount",
    "material_markup",
    "online_payments_enabled",
)


def format_invoice_number(invoice_id: int, year: Optional[int] = None) -> str:
    year = year or datetime.utcnow().year
    return f"{INVOICE_NUMBER_PREFIX}-{year}-{invoice_id:05d}"


def due_date_for(payment_period: Optional[str], sent_on: date) -> date:
    days = PAYMENT_PERIOD_DAYS.get((payment_period or "").upper(), PAYMENT_PERIOD_DAYS[DEFAULT_PAYMENT_PERIOD])
    return sent_on + timedelta(days=days)


def _money(value: Any) -> float:
    return float(to_decimal(value))


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _line_item_rows(priced: Iterable[PricedLineItem]) -> List[InvoiceLineItem]:
    return [
        InvoiceLineItem(
            name=line.item.name,
            description=line.item.description or None,
            quantity=line.item.quantity,
            cost=line.item.cost,
            price=line.item.price,
            markup=line.item.markup,
            tax=line.item.tax,
            discount=line.item.discount,
            total=line.total,
        )
        for line in priced
    ]


def _apply_totals(invoice: Invoice, priced: List[PricedLineItem], mode: PricingMode) -> None:
    totals = calculate_totals(priced, mode)
    paid = to_decimal(invoice.amount_paid)
    if totals.total_with_tax < paid:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="New total is less than the amount already paid",
        )
    invoice.subtotal = totals.subtotal
    invoice.tax_amount = totals.tax_amount
    invoice.total_with_tax = totals.total_with_tax
    settle_invoice(invoice)


def settle_invoice(invoice: Invoice, now: Optional[datetime] = None) -> Invoice:
    """Derive ``amount_unpaid`` and the payment status from the amounts."""
    total = to_decimal(invoice.total_with_tax)
    paid = to_decimal(invoice.amount_paid)
    invoice.amount_unpaid = total - paid
    if paid <= ZERO:
        invoice.status = "UNPAID"
    elif paid >= total:
        invoice.status = "PAID"
        invoice.type = "PAID"
        invoice.paid_at = invoice.paid_at or now or datetime.utcnow()
    else:
        invoice.status = "PARTIALLY_PAID"
    return invoice


def create_invoice(
    db: Session,
    *,
    job: Job,
    line_items: Iterable[Mapping[str, Any]],
    mode: PricingMode = PricingMode.FULL,
    customer_id: Optional[int] = None,
    payment_period: Optional[str] = None,
    card_payment_fee: Optional[str] = None,
    notes: Optional[str] = None,
) -> Invoice:
    """Create a DRAFT invoice for ``job`` and assign its number.

    The number embeds the row id, so the row is flushed before numbering.
    """
    priced = price_line_items(line_items, mode)

    invoice = Invoice(
        company_id=job.company_id,
        job_id=job.id,
        customer_id=customer_id or job.customer_id,
        type="DRAFT",
        delivery_status="NOT_SENT",
        status="UNPAID",
        payment_period=payment_period or DEFAULT_PAYMENT_PERIOD,
        card_payment_fee=card_payment_fee or "COMPANY_SETTING",
        pricing_mode=mode.value,
        amount_paid=ZERO,
        notes=notes,
    )
    _apply_totals(invoice, priced, mode)
    invoice.line_items = _line_item_rows(priced)
    db.add(invoice)
    db.flush()

    invoice.invoice_number = format_invoice_number(invoice.id)
    logger.info(
        "%s created id=%s number=%s job_id=%s mode=%s total=%s",
        INVOICE_PREFIX,
        invoice.id,
        invoice.invoice_number,
        job.id,
        mode.value,
        invoice.total_with_tax,
    )
    return invoice


def update_invoice(
    invoice: Invoice,
    changes: Mapping[str, Any],
    line_items: Optional[Iterable[Mapping[str, Any]]] = None,
) -> Invoice:
    """Apply partial changes; line items are replaced only when given and
    are priced with the mode the invoice was created with. A new total
    below the amount already paid is refused before anything changes."""
    if line_items is not None:
        mode = PricingMode(invoice.pricing_mode or PricingMode.FULL.value)
        priced = price_line_items(line_items, mode)
        _apply_totals(invoice, priced, mode)
        invoice.line_items = _line_item_rows(priced)

    for field in _UPDATABLE_FIELDS:
        if field in changes and changes[field] is not None:
            setattr(invoice, field, changes[field])
    return invoice


def approve_invoice(invoice: Invoice) -> Invoice:
    if invoice.type not in {"DRAFT", "APPROVED"}:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only draft invoices can be approved",
        )
    invoice.type = "APPROVED"
    return settle_invoice(invoice)


def send_invoice(invoice: Invoice, now: Optional[datetime] = None) -> Invoice:
    if invoice.type == "VOID":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Void invoices cannot be sent")
    now = now or datetime.utcnow()
    invoice.delivery_status = "SENT"
    invoice.sent_at = now
    invoice.due_date = due_date_for(invoice.payment_period, now.date())
    if invoice.type in {"DRAFT", "APPROVED"}:
        invoice.type = "SENT"
    return invoice


def void_invoice(invoice: Invoice) -> Invoice:
    """Cancel an issued invoice. Paid or part-paid invoices keep their record."""
    if invoice.type == "VOID":
        return invoice
    if to_decimal(invoice.amount_paid) > ZERO:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invoices with payments cannot be voided",
        )
    invoice.type = "VOID"
    invoice.amount_unpaid = ZERO
    return invoice


def record_payment(invoice: Invoice, amount: Any, now: Optional[datetime] = None) -> Invoice:
    if invoice.type in {"DRAFT", "VOID"}:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Payments can only be recorded on approved or sent invoices",
        )
    amount = to_cents(to_decimal(amount))
    if amount <= ZERO:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment amount must be positive")

    total = to_decimal(invoice.total_with_tax)
    paid = to_decimal(invoice.amount_paid) + amount
    if paid > total:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment exceeds the amount outstanding",
        )

    invoice.amount_paid = paid
    return settle_invoice(invoice, now=now)


def invoice_margins(invoice: Invoice) -> Dict[str, float]:
    items = [LineItem(cost=to_decimal(row.cost), quantity=to_decimal(row.quantity)) for row in invoice.line_items]
    margins = calculate_margins(items, to_decimal(invoice.subtotal))
    return {
        "total_cost": float(margins.total_cost),
        "total_charge": float(margins.total_charge),
        "gross_profit": float(margins.gross_profit),
        "gross_margin": float(margins.gross_margin),
    }


def summarize_invoices(invoices: Iterable[Invoice]) -> Dict[str, float]:
    claimed = gst = unpaid = paid = ZERO
    for invoice in invoices:
        claimed += to_decimal(invoice.total_with_tax)
        gst += to_decimal(invoice.tax_amount)
        unpaid += to_decimal(invoice.amount_unpaid)
        paid += to_decimal(invoice.amount_paid)
    return {
        "total_claimed": float(claimed),
        "total_gst": float(gst),
        "total_unpaid": float(unpaid),
        "total_paid": float(paid),
    }


def serialize_line_item(row: InvoiceLineItem) -> Dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "quantity": _money(row.quantity),
        "cost": _money(row.cost),
        "price": _money(row.price),
        "markup": _money(row.markup),
        "tax": _money(row.tax),
        "discount": _money(row.discount),
        "total": _money(row.total),
    }


def serialize_invoice(invoice: Invoice, *, job_name: Optional[str] = None, with_lines: bool = False) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number or "",
        "job_id": invoice.job_id,
        "job_name": job_name or "",
        "customer_id": invoice.customer_id,
        "type": invoice.type,
        "delivery_status": invoice.delivery_status,
        "status": invoice.status,
        "payment_period": invoice.payment_period,
        "card_payment_fee": invoice.card_payment_fee,
        "pricing_mode": invoice.pricing_mode,
        "subtotal": _money(invoice.subtotal),
        "tax_amount": _money(invoice.tax_amount),
        "total_with_tax": _money(invoice.total_with_tax),
        "amount_paid": _money(invoice.amount_paid),
        "amount_unpaid": _money(invoice.amount_unpaid),
        "labour_discount": _money(invoice.labour_discount),
        "material_discount": _money(invoice.material_discount),
        "material_markup": _money(invoice.material_markup),
        "online_payments_enabled": invoice.online_payments_enabled,
        "notes": invoice.notes,
        "letterhead": invoice.letterhead,
        "sent_at": _iso(invoice.sent_at),
        "due_date": _iso(invoice.due_date),
        "paid_at": _iso(invoice.paid_at),
        "xero_invoice_id": invoice.xero_invoice_id,
        "xero_sync_status": invoice.xero_sync_status,
        "xero_last_sync_at": _iso(invoice.xero_last_sync_at),
        "created_at": _iso(invoice.created_at),
        "updated_at": _iso(invoice.updated_at),
    }
    if with_lines:
        data["line_items"] = [serialize_line_item(row) for row in invoice.line_items]
    return data
