from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from fieldops.core.config import (
    JWT_SECRET_KEY,
    XERO_API_BASE_URL,
    XERO_AUTHORIZE_URL,
    XERO_CLIENT_ID,
    XERO_CLIENT_SECRET,
    XERO_CONNECTIONS_URL,
    XERO_REDIRECT_URI,
    XERO_SCOPES,
    XERO_TIMEOUT_SECONDS,
    XERO_TOKEN_URL,
)
from fieldops.models.invoice import Invoice
from fieldops.models.xero_connection import XeroConnection
from fieldops.services.line_items import ZERO, PricingMode, to_decimal

logger = logging.getLogger(__name__)
XERO_PREFIX = "[XERO]"

STATE_SALT = "xero-oauth-state"
STATE_MAX_AGE_SECONDS = 600
TOKEN_REFRESH_MARGIN = timedelta(seconds=60)


class XeroError(RuntimeError):
    pass


_state_serializer = URLSafeTimedSerializer(JWT_SECRET_KEY, salt=STATE_SALT)


def is_configured() -> bool:
    return bool(XERO_CLIENT_ID and XERO_CLIENT_SECRET)


def sign_state(company_id: int) -> str:
    return _state_serializer.dumps({"company_id": int(company_id)})


def read_state(state: str) -> int:
    try:
        data = _state_serializer.loads(state, max_age=STATE_MAX_AGE_SECONDS)
    except SignatureExpired as exc:
        raise XeroError("Xero authorization expired, connect again") from exc
    except BadSignature as exc:
        raise XeroError("Invalid Xero authorization state") from exc
    return int(data["company_id"])


def build_authorization_url(company_id: int) -> str:
    if not is_configured():
        raise XeroError("Xero is not configured")
    query = urlencode(
        {
            "response_type": "code",
            "client_id": XERO_CLIENT_ID,
            "redirect_uri": XERO_REDIRECT_URI,
            "scope": XERO_SCOPES,
            "state": sign_state(company_id),
        }
    )
    return f"{XERO_AUTHORIZE_URL}?{query}"


def _request(method: str, url: str, **kwargs) -> Any:
    try:
        with httpx.Client(timeout=XERO_TIMEOUT_SECONDS) as client:
            response = client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.warning("%s request failed method=%s url=%s error=%s", XERO_PREFIX, method, url, exc)
        raise XeroError("Xero is unreachable") from exc

    if response.status_code >= 400:
        logger.warning(
            "%s error response method=%s url=%s status=%s body=%s",
            XERO_PREFIX,
            method,
            url,
            response.status_code,
            response.text[:500],
        )
        raise XeroError(f"Xero returned {response.status_code}")

    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as exc:
        raise XeroError("Xero returned an invalid response") from exc


def _token_request(data: Dict[str, str]) -> Dict[str, Any]:
    return _request("POST", XERO_TOKEN_URL, data=data, auth=(XERO_CLIENT_ID, XERO_CLIENT_SECRET))


def _store_tokens(connection: XeroConnection, tokens: Dict[str, Any], now: datetime) -> None:
    connection.access_token = tokens.get("access_token")
    connection.refresh_token = tokens.get("refresh_token") or connection.refresh_token
    connection.expires_at = now + timedelta(seconds=int(tokens.get("expires_in") or 1800))


def complete_authorization(db: Session, *, code: str, state: str) -> XeroConnection:
    """Exchange the OAuth code and remember the first Xero organisation."""
    company_id = read_state(state)
    now = datetime.utcnow()
    tokens = _token_request(
        {"grant_type": "authorization_code", "code": code, "redirect_uri": XERO_REDIRECT_URI}
    )
    tenants = _request(
        "GET",
        XERO_CONNECTIONS_URL,
        headers={"Authorization": f"Bearer {tokens.get('access_token')}"},
    )
    if not tenants:
        raise XeroError("No Xero organisation was authorized")

    connection = db.query(XeroConnection).filter(XeroConnection.company_id == company_id).first()
    if connection is None:
        connection = XeroConnection(company_id=company_id)
        db.add(connection)
    _store_tokens(connection, tokens, now)
    connection.tenant_id = tenants[0].get("tenantId")
    connection.connected_at = now
    logger.info("%s connected company_id=%s tenant_id=%s", XERO_PREFIX, company_id, connection.tenant_id)
    return connection


def get_connection(db: Session, company_id: int) -> Optional[XeroConnection]:
    connection = db.query(XeroConnection).filter(XeroConnection.company_id == company_id).first()
    if connection is None or not connection.access_token:
        return None
    return connection


def ensure_fresh_token(connection: XeroConnection, now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    if connection.expires_at and connection.expires_at - TOKEN_REFRESH_MARGIN > now:
        return connection.access_token
    if not connection.refresh_token:
        raise XeroError("Xero connection expired, connect again")

    tokens = _token_request({"grant_type": "refresh_token", "refresh_token": connection.refresh_token})
    _store_tokens(connection, tokens, now)
    logger.info("%s token refreshed company_id=%s", XERO_PREFIX, connection.company_id)
    return connection.access_token


def _api(connection: XeroConnection, method: str, path: str, **kwargs) -> Any:
    token = ensure_fresh_token(connection)
    headers = {
        "Authorization": f"Bearer {token}",
        "Xero-tenant-id": connection.tenant_id or "",
        "Accept": "application/json",
    }
    return _request(method, f"{XERO_API_BASE_URL}{path}", headers=headers, **kwargs)


def list_contacts(connection: XeroConnection) -> List[Dict[str, Any]]:
    data = _api(connection, "GET", "/Contacts")
    return [
        {
            "contact_id": contact.get("ContactID"),
            "name": contact.get("Name"),
            "email": contact.get("EmailAddress"),
        }
        for contact in data.get("Contacts", [])
    ]


def create_contact(connection: XeroConnection, *, name: str, email: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"Name": name}
    if email:
        body["EmailAddress"] = email
    data = _api(connection, "POST", "/Contacts", json={"Contacts": [body]})
    created = (data.get("Contacts") or [{}])[0]
    return {"contact_id": created.get("ContactID"), "name": created.get("Name"), "email": created.get("EmailAddress")}


def invoice_payload(invoice: Invoice, contact_name: str) -> Dict[str, Any]:
    # quick invoices are priced without per-line discounts
    quick = invoice.pricing_mode == PricingMode.QUICK.value
    payload: Dict[str, Any] = {
        "Type": "ACCREC",
        "Contact": {"Name": contact_name or "Customer"},
        "InvoiceNumber": invoice.invoice_number,
        "LineAmountTypes": "Exclusive",
        "Status": "DRAFT" if invoice.type == "DRAFT" else "AUTHORISED",
        "LineItems": [
            {
                "Description": row.description or row.name or "Item",
                "Quantity": float(to_decimal(row.quantity)),
                "UnitAmount": float(to_decimal(row.price)),
                "DiscountRate": float(ZERO if quick else to_decimal(row.discount)),
            }
            for row in invoice.line_items
        ],
    }
    if invoice.due_date:
        payload["DueDate"] = invoice.due_date.isoformat()
    if invoice.xero_invoice_id:
        payload["InvoiceID"] = invoice.xero_invoice_id
    return payload


def sync_invoice(connection: XeroConnection, invoice: Invoice, contact_name: str) -> Invoice:
    """Push ``invoice`` to Xero and record the outcome on the row.

    A failed push marks the invoice ``ERROR`` before the error propagates.
    """
    now = datetime.utcnow()
    try:
        data = _api(connection, "POST", "/Invoices", json={"Invoices": [invoice_payload(invoice, contact_name)]})
    except XeroError:
        invoice.xero_sync_status = "ERROR"
        invoice.xero_last_sync_at = now
        raise

    remote = (data.get("Invoices") or [{}])[0]
    invoice.xero_invoice_id = remote.get("InvoiceID") or invoice.xero_invoice_id
    invoice.xero_sync_status = "SYNCED"
    invoice.xero_last_sync_at = now
    connection.last_sync_at = now
    logger.info("%s invoice synced id=%s xero_id=%s", XERO_PREFIX, invoice.id, invoice.xero_invoice_id)
    return invoice
