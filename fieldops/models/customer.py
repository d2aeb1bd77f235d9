from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from fieldops.core.database import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)

    company_name = Column(String(200), nullable=False)
    source = Column(String(50), nullable=True)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    title = Column(String(100), nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String(50), nullable=True)

    physical_address = Column(String, nullable=True)
    postal_address = Column(String, nullable=True)
    billing_contact = Column(String, nullable=True)

    pricing_tier = Column(String(50), nullable=False, default="DEFAULT")
    payment_terms = Column(String(50), nullable=False, default="COMPANY_DEFAULT")
    card_payment_fee = Column(String(30), nullable=False, default="COMPANY_SETTING")
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
