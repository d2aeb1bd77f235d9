from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from fieldops.models.company import Company

BRANDING_FIELDS = ("name", "logo_url", "primary_color", "abn", "address", "phone", "email")


def create_company(db: Session, name: str, **branding: Optional[str]) -> Company:
    company = Company(name=name.strip(), billing_status="trial")
    for field, value in branding.items():
        if field in BRANDING_FIELDS and value is not None:
            setattr(company, field, value)
    db.add(company)
    db.flush()
    return company


def serialize_company(company: Optional[Company]) -> Optional[Dict[str, Any]]:
    if company is None:
        return None
    return {
        "id": company.id,
        "name": company.name,
        "billing_status": company.billing_status,
        "logo_url": company.logo_url,
        "primary_color": company.primary_color,
        "abn": company.abn,
        "address": company.address,
        "phone": company.phone,
        "email": company.email,
        "created_at": company.created_at.isoformat() if company.created_at else None,
    }
