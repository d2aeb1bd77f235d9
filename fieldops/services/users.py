from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from fieldops.models.user import User


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def email_taken(db: Session, email: str, exclude_user_id: Optional[int] = None) -> bool:
    query = db.query(User.id).filter(User.email == normalize_email(email))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "company_id": user.company_id,
        "email": user.email,
        "role": user.role,
        "active": user.active,
        "full_name": user.full_name,
        "phone": user.phone,
        "avatar": user.avatar,
        "job_title": user.job_title,
        "department": user.department,
        "address": user.address,
        "timezone": user.timezone,
        "language": user.language,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "profile_updated_at": user.profile_updated_at.isoformat() if user.profile_updated_at else None,
    }
