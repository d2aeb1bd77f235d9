from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from fieldops.core.database import Base


class JobActivity(Base):
    __tablename__ = "job_activity"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String, nullable=False)
    user_name = Column(String, nullable=False, default="System")
    created_at = Column(DateTime, default=datetime.utcnow)
