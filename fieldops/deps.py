# fieldops/deps.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from fieldops.core.database import apply_session_settings, get_db
from fieldops.core.request_context import update_request_context
from fieldops.models.user import User
from fieldops.services.auth import decode_access_token
from fieldops.services.company_context import CROSS_COMPANY_DETAIL, CompanyContext, can_switch_company
from fieldops.services.permissions import normalize_role

# Swagger "Authorize" (OAuth2 password flow) posts to this endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

logger = logging.getLogger(__name__)


def _extract_user_id(payload: Dict[str, Any]) -> Optional[int]:
    """Read the user id from ``sub`` (JWT standard) or legacy ``id``."""
    raw = payload.get("sub", None)
    if raw is None:
        raw = payload.get("id", None)

    if raw is None:
        return None

    if isinstance(raw, int):
        return raw

    if isinstance(raw, str):
        raw = raw.strip()
        if raw.isdigit():
            return int(raw)

    return None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def get_token_payload(token: str = Depends(oauth2_scheme)) -> Dict[str, Any]:
    try:
        return decode_access_token(token)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_current_user(
    request: Request,
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> User:
    """Validate the bearer token and load the active user it names."""
    user_id = _extract_user_id(payload)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token (no user id)",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    request.state.user = user
    update_request_context(user_id=user.id)
    return user


def get_company_context(
    request: Request,
    payload: Dict[str, Any] = Depends(get_token_payload),
    user: User = Depends(get_current_user),
) -> CompanyContext:
    """Company context carried by the token.

    Only superadmins keep god mode; the role always comes from the database
    so a demoted user loses any elevated context on the next request.
    """
    role = normalize_role(user.role)
    god_mode = bool(payload.get("god_mode")) and role == "superadmin"

    company_id = _optional_int(payload.get("company_id"))
    if company_id is None and not god_mode:
        company_id = user.company_id

    context = CompanyContext(
        user_id=user.id,
        role=role,
        home_company_id=user.company_id,
        company_id=company_id,
        god_mode=god_mode,
    )
    if context.is_switched and not god_mode and not can_switch_company(user, company_id):
        _log_access_denied(reason="company_mismatch", user=user, request=request)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=CROSS_COMPANY_DETAIL)

    request.state.company_context = context
    update_request_context(company_id=company_id, god_mode=god_mode)
    return context


def get_scoped_db(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_db),
) -> Iterator[Session]:
    apply_session_settings(db, company_id=context.company_id, god_mode=context.god_mode)
    yield db


def _log_access_denied(*, reason: str, user: User, request: Request) -> None:
    endpoint = f"{request.method} {request.url.path}"
    logger.warning(
        "Access denied (%s): user_id=%s user_role=%s user_company=%s endpoint=%s",
        reason,
        getattr(user, "id", None),
        getattr(user, "role", None),
        getattr(user, "company_id", None),
        endpoint,
    )


def require_role(roles: Iterable[str]):
    allowed = {role.strip().lower() for role in roles}
    if "admin" in allowed or "owner" in allowed:
        allowed.update({"admin", "owner"})

    def _dependency(
        request: Request,
        user: User = Depends(get_current_user),
    ) -> User:
        role = normalize_role(user.role)
        if role == "superadmin":
            return user
        if role not in allowed:
            _log_access_denied(reason="role_denied", user=user, request=request)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _dependency
