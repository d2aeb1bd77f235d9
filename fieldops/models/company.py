from sqlalchemy import Column, DateTime, Integer, String, func

from fieldops.core.database import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, default="New Company")
    billing_status = Column(String(30), nullable=False, default="trial")

    # Branding shown on invoices and in the app header.
    logo_url = Column(String, nullable=True)
    primary_color = Column(String(20), nullable=True)
    abn = Column(String(30), nullable=True)
    address = Column(String, nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
