from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from fieldops.core.database import Base


class XeroConnection(Base):
    __tablename__ = "xero_connections"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, unique=True, index=True)
    tenant_id = Column(String(64), nullable=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    connected_at = Column(DateTime, nullable=True)
    last_sync_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
