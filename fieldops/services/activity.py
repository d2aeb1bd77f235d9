from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from fieldops.models.job import Job
from fieldops.models.job_activity import JobActivity


def resolve_actor_name(user) -> str:
    name = (getattr(user, "full_name", None) or "").strip()
    if name:
        return name

    role = (getattr(user, "role", None) or "").strip().lower()
    if role == "superadmin":
        return "Superadmin"
    if role in {"admin", "owner"}:
        return "Admin"
    return "System"


def log_job_activity(
    db: Session,
    *,
    job: Job,
    type: str,
    title: str,
    user_name: Optional[str] = None,
) -> JobActivity:
    entry = JobActivity(
        job_id=job.id,
        company_id=job.company_id,
        type=type,
        title=title,
        user_name=user_name or "System",
    )
    db.add(entry)
    return entry
