from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from fieldops.core.database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)

    title = Column(String(200), nullable=False)
    client = Column(String(200), nullable=True)
    address = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    # status is free text; phase is always derived from it on write
    status = Column(String(50), nullable=False, default="new")
    phase = Column(String(20), nullable=False, default="pending", index=True)

    color = Column(String(20), nullable=True)
    contact_name = Column(String(200), nullable=True)
    contact_email = Column(String, nullable=True)
    contact_phone = Column(String(50), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
