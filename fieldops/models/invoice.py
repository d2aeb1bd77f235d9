from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from fieldops.core.database import Base


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    invoice_number = Column(String(30), nullable=True, unique=True)

    type = Column(String(20), nullable=False, default="DRAFT")
    delivery_status = Column(String(20), nullable=False, default="NOT_SENT")
    status = Column(String(20), nullable=False, default="UNPAID")
    payment_period = Column(String(20), nullable=False, default="14_DAYS")
    card_payment_fee = Column(String(30), nullable=False, default="COMPANY_SETTING")
    # "full" or "quick"; decides how line items are totalled on every save
    pricing_mode = Column(String(10), nullable=False, default="full")

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_with_tax = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    amount_unpaid = Column(Numeric(12, 2), nullable=False, default=0)

    labour_discount = Column(Numeric(5, 2), nullable=False, default=0)
    material_discount = Column(Numeric(5, 2), nullable=False, default=0)
    material_markup = Column(Numeric(5, 2), nullable=False, default=0)
    online_payments_enabled = Column(Boolean, nullable=False, default=True)

    notes = Column(Text, nullable=True)
    letterhead = Column(String, nullable=True)

    sent_at = Column(DateTime, nullable=True)
    due_date = Column(Date, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    xero_invoice_id = Column(String(64), nullable=True)
    xero_sync_status = Column(String(20), nullable=False, default="NOT_SYNCED")
    xero_last_sync_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.id",
    )


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False, default="")
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(12, 2), nullable=False, default=0)
    cost = Column(Numeric(12, 2), nullable=False, default=0)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    markup = Column(Numeric(5, 2), nullable=False, default=0)
    tax = Column(Numeric(5, 2), nullable=False, default=10)
    discount = Column(Numeric(5, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="line_items")
