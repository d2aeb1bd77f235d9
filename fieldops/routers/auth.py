# fieldops/routers/auth.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from fieldops.core.database import get_db
from fieldops.deps import get_company_context, get_current_user
from fieldops.models.company import Company
from fieldops.models.user import User
from fieldops.services.auth import create_user_token
from fieldops.services.company_context import CompanyContext, can_switch_company
from fieldops.services.companies import create_company, serialize_company
from fieldops.services.passwords import hash_password, needs_rehash, validate_new_password, verify_password
from fieldops.services.permissions import normalize_role, permissions_for_role
from fieldops.services.users import email_taken, normalize_email, serialize_user

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = logging.getLogger(__name__)
AUTH_PREFIX = "[AUTH]"


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


class RegisterPayload(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    company_name: str = Field(..., min_length=1)


class SwitchCompanyPayload(BaseModel):
    company_id: Optional[int] = None
    god_mode: bool = False


def _authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user or not user.active or not verify_password(password, user.password_hash):
        logger.info("%s login failed email=%s", AUTH_PREFIX, normalize_email(email))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        db.commit()
        logger.info("%s password hash upgraded user_id=%s", AUTH_PREFIX, user.id)
    return user


def _token_response(user: User, *, company_id: Optional[int] = None, god_mode: bool = False) -> dict:
    token = create_user_token(user, company_id=company_id, god_mode=god_mode)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": serialize_user(user),
        "permissions": permissions_for_role(user.role),
    }


@router.post("/login")
def login(payload: LoginPayload, db: Session = Depends(get_db)):
    user = _authenticate(db, payload.email, payload.password)
    logger.info("%s login user_id=%s role=%s", AUTH_PREFIX, user.id, user.role)
    return _token_response(user)


@router.post("/token")
def token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Form-encoded login used by the Swagger UI "Authorize" button."""
    user = _authenticate(db, form_data.username, form_data.password)
    return _token_response(user)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterPayload, db: Session = Depends(get_db)):
    validate_new_password(payload.password)
    email = normalize_email(payload.email)
    if email_taken(db, email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    company = create_company(db, payload.company_name)
    user = User(
        company_id=company.id,
        email=email,
        password_hash=hash_password(payload.password),
        role="admin",
        active=True,
        full_name=(payload.full_name or "").strip() or None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("%s registered user_id=%s company_id=%s", AUTH_PREFIX, user.id, company.id)
    return _token_response(user)


@router.post("/switch-company")
def switch_company(
    payload: SwitchCompanyPayload,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    role = normalize_role(user.role)

    if payload.god_mode:
        if role != "superadmin":
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only superadmins can enter god mode")
        logger.info("%s god mode enabled user_id=%s", AUTH_PREFIX, user.id)
        return _token_response(user, company_id=payload.company_id, god_mode=True)

    if payload.company_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="company_id required")

    company = db.query(Company).filter(Company.id == payload.company_id).first()
    if not company:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")

    if not can_switch_company(user, company.id):
        logger.warning(
            "%s switch denied user_id=%s role=%s company_id=%s",
            AUTH_PREFIX,
            user.id,
            role,
            company.id,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to switch to this company")

    logger.info("%s switched company user_id=%s company_id=%s", AUTH_PREFIX, user.id, company.id)
    response = _token_response(user, company_id=company.id)
    response["company"] = serialize_company(company)
    return response


@router.get("/me")
def me(
    user: User = Depends(get_current_user),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db),
):
    company = None
    if context.company_id is not None:
        company = db.query(Company).filter(Company.id == context.company_id).first()

    return {
        "user": serialize_user(user),
        "company": serialize_company(company),
        "company_id": context.company_id,
        "home_company_id": context.home_company_id,
        "god_mode": context.god_mode,
        "permissions": permissions_for_role(user.role),
    }
