"""Reusable rows and tokens for backend test scenarios."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from fieldops.models.company import Company
from fieldops.models.job import Job
from fieldops.models.user import User
from fieldops.services.auth import create_user_token
from fieldops.services.passwords import hash_password
from fieldops.services.phase_mapper import map_status_to_phase

DEFAULT_PASSWORD = "secret123"

_PASSWORD_HASH_CACHE: dict = {}


def _hashed(password: str) -> str:
    if password not in _PASSWORD_HASH_CACHE:
        _PASSWORD_HASH_CACHE[password] = hash_password(password)
    return _PASSWORD_HASH_CACHE[password]


def make_company(db, name: str = "Acme Plumbing") -> Company:
    company = Company(name=name, billing_status="trial")
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def make_user(
    db,
    company: Optional[Company],
    *,
    email: str,
    role: str = "staff",
    full_name: Optional[str] = None,
    active: bool = True,
    password: str = DEFAULT_PASSWORD,
    created_offset_minutes: int = 0,
) -> User:
    user = User(
        company_id=company.id if company is not None else None,
        email=email,
        password_hash=_hashed(password),
        role=role,
        active=active,
        full_name=full_name,
        created_at=datetime(2024, 1, 1) + timedelta(minutes=created_offset_minutes),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_job(db, company: Company, *, title: str = "Blocked drain", status: str = "new") -> Job:
    job = Job(company_id=company.id, title=title, status=status, phase=map_status_to_phase(status).value)
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def auth_headers(user: User, *, company_id: Optional[int] = None, god_mode: bool = False) -> dict:
    token = create_user_token(user, company_id=company_id, god_mode=god_mode)
    return {"Authorization": f"Bearer {token}"}
