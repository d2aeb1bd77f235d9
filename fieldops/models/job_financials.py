from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric

from fieldops.core.database import Base


class JobFinancials(Base):
    __tablename__ = "job_financials"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, unique=True)

    labour_cost = Column(Numeric(12, 2), nullable=False, default=0)
    material_cost = Column(Numeric(12, 2), nullable=False, default=0)
    other_cost = Column(Numeric(12, 2), nullable=False, default=0)
    revenue = Column(Numeric(12, 2), nullable=False, default=0)

    # derived on every write from the four inputs above
    total_cost = Column(Numeric(12, 2), nullable=False, default=0)
    profit = Column(Numeric(12, 2), nullable=False, default=0)
    margin = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
