from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from fieldops.deps import get_company_context, get_scoped_db, require_role
from fieldops.models.user import User
from fieldops.services.company_context import (
    CompanyContext,
    company_scope,
    require_company_id,
    validate_company_ownership,
)
from fieldops.services.passwords import hash_password, validate_new_password
from fieldops.services.permissions import ASSIGNABLE_ROLES
from fieldops.services.users import email_taken, normalize_email, serialize_user

router = APIRouter(prefix="/api/users", tags=["users"])


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    role: str = "staff"
    phone: Optional[str] = None
    job_title: Optional[str] = None


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    role: Optional[str] = None
    active: Optional[bool] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None


def _validated_role(role: str) -> str:
    role = role.strip().lower()
    if role not in ASSIGNABLE_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")
    return role


@router.get("")
def list_users(
    include_inactive: bool = False,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    query = company_scope(db.query(User), User, context)
    if not include_inactive:
        query = query.filter(User.active.is_(True))
    return [serialize_user(user) for user in query.order_by(User.id.asc()).all()]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    _admin: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    company_id = require_company_id(context)
    validate_new_password(payload.password)
    role = _validated_role(payload.role)

    email = normalize_email(payload.email)
    if email_taken(db, email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        company_id=company_id,
        email=email,
        password_hash=hash_password(payload.password),
        role=role,
        active=True,
        full_name=(payload.full_name or "").strip() or None,
        phone=payload.phone,
        job_title=payload.job_title,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return serialize_user(user)


@router.put("/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    admin: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    target = db.query(User).filter(User.id == user_id).first()
    validate_company_ownership(target, context, detail="User not found")

    changes = payload.model_dump(exclude_unset=True)
    if "role" in changes and changes["role"] is not None:
        target.role = _validated_role(changes.pop("role"))
    if "active" in changes and changes["active"] is not None:
        active = changes.pop("active")
        if not active and target.id == admin.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You cannot deactivate your own account",
            )
        target.active = active

    for field, value in changes.items():
        if field in {"role", "active"}:
            continue
        setattr(target, field, value.strip() if isinstance(value, str) else value)

    db.commit()
    db.refresh(target)
    return serialize_user(target)


@router.delete("/{user_id}")
def deactivate_user(
    user_id: int,
    admin: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    target = db.query(User).filter(User.id == user_id).first()
    validate_company_ownership(target, context, detail="User not found")
    if target.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account",
        )

    target.active = False
    db.commit()
    return {"ok": True}
