from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fieldops.deps import get_company_context, get_scoped_db, require_role
from fieldops.models.service_catalog import ServiceCatalog, ServiceCatalogItem
from fieldops.models.user import User
from fieldops.services.company_context import (
    CompanyContext,
    company_scope,
    require_company_id,
    validate_company_ownership,
)
from fieldops.services.line_items import (
    AMOUNT_MAX,
    PERCENT_MAX,
    LineItem,
    PricingMode,
    price_line_item,
    to_cents,
    to_decimal,
)

router = APIRouter(prefix="/api/service-catalogs", tags=["service-catalogs"])


class CatalogPayload(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None


class CatalogItemPayload(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    unit: Optional[str] = None
    cost_price: Optional[Decimal] = Field(None, ge=0, le=AMOUNT_MAX)
    sell_price: Optional[Decimal] = Field(None, ge=0, le=AMOUNT_MAX)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=PERCENT_MAX)
    is_favorite: Optional[bool] = None


class CatalogLineItemRequest(BaseModel):
    quantity: Decimal = Field(Decimal("1"), ge=0, le=AMOUNT_MAX)


def serialize_item(item: ServiceCatalogItem) -> dict:
    return {
        "id": item.id,
        "service_catalog_id": item.service_catalog_id,
        "name": item.name,
        "description": item.description,
        "unit": item.unit,
        "cost_price": float(to_decimal(item.cost_price)),
        "sell_price": float(to_decimal(item.sell_price)),
        "tax_rate": float(to_decimal(item.tax_rate)),
        "is_favorite": item.is_favorite,
    }


def serialize_catalog(catalog: ServiceCatalog, item_count: int) -> dict:
    return {
        "id": catalog.id,
        "name": catalog.name,
        "is_active": catalog.is_active,
        "item_count": item_count,
        "created_at": catalog.created_at.isoformat() if catalog.created_at else None,
        "updated_at": catalog.updated_at.isoformat() if catalog.updated_at else None,
    }


def _required_name(value: Optional[str]) -> str:
    name = (value or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")
    return name


def _get_catalog(db: Session, catalog_id: int, context: CompanyContext) -> ServiceCatalog:
    catalog = db.query(ServiceCatalog).filter(ServiceCatalog.id == catalog_id).first()
    return validate_company_ownership(catalog, context, detail="Service catalog not found")


def _get_item(db: Session, item_id: int, context: CompanyContext) -> ServiceCatalogItem:
    item = db.query(ServiceCatalogItem).filter(ServiceCatalogItem.id == item_id).first()
    return validate_company_ownership(item, context, detail="Service catalog item not found")


@router.get("")
def list_catalogs(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    catalogs = company_scope(db.query(ServiceCatalog), ServiceCatalog, context).order_by(ServiceCatalog.name.asc()).all()
    return [serialize_catalog(catalog, len(catalog.items)) for catalog in catalogs]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_catalog(
    payload: CatalogPayload,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    catalog = ServiceCatalog(
        company_id=require_company_id(context),
        name=_required_name(payload.name),
        is_active=True if payload.is_active is None else payload.is_active,
    )
    db.add(catalog)
    db.commit()
    db.refresh(catalog)
    return serialize_catalog(catalog, 0)


@router.put("/{catalog_id}")
def update_catalog(
    catalog_id: int,
    payload: CatalogPayload,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    catalog = _get_catalog(db, catalog_id, context)
    if payload.name is not None:
        catalog.name = _required_name(payload.name)
    if payload.is_active is not None:
        catalog.is_active = payload.is_active
    db.commit()
    db.refresh(catalog)
    return serialize_catalog(catalog, len(catalog.items))


@router.delete("/{catalog_id}")
def delete_catalog(
    catalog_id: int,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    db.delete(_get_catalog(db, catalog_id, context))
    db.commit()
    return {"ok": True}


@router.get("/favorites")
def list_favorite_items(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    items = (
        company_scope(db.query(ServiceCatalogItem), ServiceCatalogItem, context)
        .filter(ServiceCatalogItem.is_favorite.is_(True))
        .order_by(ServiceCatalogItem.name.asc())
        .all()
    )
    return [serialize_item(item) for item in items]


@router.get("/{catalog_id}/items")
def list_catalog_items(
    catalog_id: int,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    catalog = _get_catalog(db, catalog_id, context)
    items = (
        db.query(ServiceCatalogItem)
        .filter(ServiceCatalogItem.service_catalog_id == catalog.id)
        .order_by(ServiceCatalogItem.name.asc(), ServiceCatalogItem.id.asc())
        .all()
    )
    return [serialize_item(item) for item in items]


@router.post("/{catalog_id}/items", status_code=status.HTTP_201_CREATED)
def create_catalog_item(
    catalog_id: int,
    payload: CatalogItemPayload,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    catalog = _get_catalog(db, catalog_id, context)
    item = ServiceCatalogItem(
        service_catalog_id=catalog.id,
        company_id=catalog.company_id,
        name=_required_name(payload.name),
        description=payload.description,
        unit=payload.unit,
        cost_price=to_decimal(payload.cost_price),
        sell_price=to_decimal(payload.sell_price),
        tax_rate=to_decimal(payload.tax_rate, fallback="10"),
        is_favorite=bool(payload.is_favorite),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return serialize_item(item)


@router.put("/{catalog_id}/items/{item_id}")
def update_catalog_item(
    catalog_id: int,
    item_id: int,
    payload: CatalogItemPayload,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    item = _get_item(db, item_id, context)
    if item.service_catalog_id != catalog_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service catalog item not found")

    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes:
        item.name = _required_name(changes.pop("name"))
    for field, value in changes.items():
        if value is None and field in {"cost_price", "sell_price", "tax_rate", "is_favorite"}:
            continue
        setattr(item, field, value)
    db.commit()
    db.refresh(item)
    return serialize_item(item)


@router.delete("/{catalog_id}/items/{item_id}")
def delete_catalog_item(
    catalog_id: int,
    item_id: int,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    item = _get_item(db, item_id, context)
    if item.service_catalog_id != catalog_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service catalog item not found")
    db.delete(item)
    db.commit()
    return {"ok": True}


@router.post("/items/{item_id}/line-item")
def catalog_item_as_line_item(
    item_id: int,
    payload: CatalogLineItemRequest,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    """Turn a price-book entry into an invoice line.

    Lines added from the catalog are totalled as price x quantity; GST is
    charged on the invoice subtotal, not per line.
    """
    item = _get_item(db, item_id, context)
    line = LineItem(
        name=item.name,
        description=item.description or "",
        quantity=to_cents(to_decimal(payload.quantity, fallback="1")),
        cost=to_decimal(item.cost_price),
        price=to_decimal(item.sell_price),
        tax=to_decimal(item.tax_rate, fallback="10"),
    )
    priced = price_line_item(line, PricingMode.QUICK)
    return {
        "name": line.name,
        "description": line.description,
        "quantity": float(line.quantity),
        "cost": float(line.cost),
        "price": float(line.price),
        "markup": 0.0,
        "tax": float(line.tax),
        "discount": 0.0,
        "total": float(priced.total),
        "pricing": PricingMode.QUICK.value,
    }
