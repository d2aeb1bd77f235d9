from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fieldops.deps import get_company_context, get_scoped_db, require_role
from fieldops.models.company import Company
from fieldops.models.user import User
from fieldops.services.company_context import CompanyContext, require_company_id
from fieldops.services.companies import create_company, serialize_company

router = APIRouter(prefix="/api/companies", tags=["companies"])


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1)
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    abn: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    abn: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


def _current_company(db: Session, context: CompanyContext) -> Company:
    company_id = require_company_id(context)
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    return company


@router.get("/current")
def get_current_company(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    return serialize_company(_current_company(db, context))


@router.put("/current")
def update_current_company(
    payload: CompanyUpdate,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    company = _current_company(db, context)
    for field, value in changes.items():
        if field == "name":
            if value is None:
                continue
            value = value.strip()
        setattr(company, field, value)
    db.commit()
    db.refresh(company)
    return serialize_company(company)


@router.get("")
def list_companies(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    """Superadmins see every company (for the switcher); others their own."""
    query = db.query(Company)
    if context.role != "superadmin":
        query = query.filter(Company.id == context.home_company_id)
    return [serialize_company(company) for company in query.order_by(Company.name.asc(), Company.id.asc()).all()]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_company_endpoint(
    payload: CompanyCreate,
    _user: User = Depends(require_role(["superadmin"])),
    db: Session = Depends(get_scoped_db),
):
    branding = payload.model_dump(exclude={"name"})
    company = create_company(db, payload.name, **branding)
    db.commit()
    db.refresh(company)
    return serialize_company(company)
