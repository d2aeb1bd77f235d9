from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fieldops.core.config import XERO_CLIENT_ID
from fieldops.core.database import apply_session_settings, get_db
from fieldops.deps import get_company_context, get_scoped_db, require_role
from fieldops.models.invoice import Invoice
from fieldops.models.user import User
from fieldops.models.xero_connection import XeroConnection
from fieldops.routers.invoices import contact_name_for
from fieldops.services import xero
from fieldops.services.company_context import CompanyContext, require_company_id

router = APIRouter(prefix="/api/xero", tags=["xero"])

logger = logging.getLogger(__name__)


class ContactCreate(BaseModel):
    name: str
    email: Optional[str] = None


def _upstream_error(exc: xero.XeroError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


def _require_connection(db: Session, company_id: int) -> XeroConnection:
    connection = xero.get_connection(db, company_id)
    if connection is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Xero is not connected")
    return connection


@router.get("/config")
def xero_config(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    connection = None
    if context.company_id is not None:
        connection = xero.get_connection(db, context.company_id)
    return {
        "client_id": XERO_CLIENT_ID or None,
        "configured": xero.is_configured(),
        "is_connected": connection is not None,
        "tenant_id": connection.tenant_id if connection else None,
        "last_sync_at": connection.last_sync_at.isoformat() if connection and connection.last_sync_at else None,
    }


@router.post("/connect")
def xero_connect(
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
):
    company_id = require_company_id(context)
    if not xero.is_configured():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Xero is not configured")
    return {"auth_url": xero.build_authorization_url(company_id)}


@router.get("/callback")
def xero_callback(code: str, state: str, db: Session = Depends(get_db)):
    """OAuth redirect target. Xero calls it from the browser, so there is no
    bearer token; the signed ``state`` names the company."""
    try:
        company_id = xero.read_state(state)
    except xero.XeroError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    apply_session_settings(db, company_id=company_id, god_mode=False)
    try:
        connection = xero.complete_authorization(db, code=code, state=state)
    except xero.XeroError as exc:
        db.rollback()
        raise _upstream_error(exc)
    db.commit()
    return {"connected": True, "tenant_id": connection.tenant_id}


@router.post("/disconnect")
def xero_disconnect(
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    company_id = require_company_id(context)
    deleted = db.query(XeroConnection).filter(XeroConnection.company_id == company_id).delete(
        synchronize_session=False
    )
    db.commit()
    logger.info("%s disconnected company_id=%s", xero.XERO_PREFIX, company_id)
    return {"ok": True, "was_connected": bool(deleted)}


@router.post("/sync-all")
def xero_sync_all(
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    company_id = require_company_id(context)
    connection = _require_connection(db, company_id)

    invoices = (
        db.query(Invoice)
        .filter(
            Invoice.company_id == company_id,
            Invoice.type != "VOID",
            Invoice.xero_sync_status != "SYNCED",
        )
        .order_by(Invoice.id.asc())
        .all()
    )
    synced = 0
    errors = 0
    for invoice in invoices:
        try:
            xero.sync_invoice(connection, invoice, contact_name_for(db, invoice))
        except xero.XeroError:
            errors += 1
            continue
        synced += 1

    db.commit()
    logger.info("%s sync-all company_id=%s synced=%s errors=%s", xero.XERO_PREFIX, company_id, synced, errors)
    return {"synced": synced, "errors": errors}


@router.get("/contacts")
def xero_contacts(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    connection = _require_connection(db, require_company_id(context))
    try:
        contacts = xero.list_contacts(connection)
    except xero.XeroError as exc:
        db.commit()
        raise _upstream_error(exc)
    db.commit()
    return contacts


@router.post("/contacts", status_code=status.HTTP_201_CREATED)
def xero_create_contact(
    payload: ContactCreate,
    _user: User = Depends(require_role(["admin"])),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")

    connection = _require_connection(db, require_company_id(context))
    try:
        contact = xero.create_contact(connection, name=name, email=payload.email)
    except xero.XeroError as exc:
        db.commit()
        raise _upstream_error(exc)
    db.commit()
    return contact
