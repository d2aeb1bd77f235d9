from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from fieldops.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # superadmin accounts may live outside any company
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)

    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default="staff")  # staff | admin | owner | superadmin
    active = Column(Boolean, nullable=False, default=True)

    full_name = Column(String, nullable=True)
    phone = Column(String(50), nullable=True)
    avatar = Column(String, nullable=True)
    job_title = Column(String, nullable=True)
    department = Column(String, nullable=True)
    address = Column(String, nullable=True)
    timezone = Column(String(64), nullable=True)
    language = Column(String(16), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    profile_updated_at = Column(DateTime, nullable=True)
