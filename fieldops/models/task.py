from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, String, Text

from fieldops.core.database import Base


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    assigned = Column(JSON, nullable=False, default=list)  # list of user ids
    due = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending | completed
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
