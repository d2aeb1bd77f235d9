from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from fieldops.core.config import JWT_ALGORITHM, JWT_EXPIRE_MINUTES, JWT_SECRET_KEY


def build_token_claims(
    user,
    *,
    company_id: Optional[int] = None,
    god_mode: bool = False,
) -> Dict[str, Any]:
    """Claims carried by every access token.

    ``company_id`` is the company the session is currently working in, which
    differs from ``home_company_id`` after a company switch.
    """
    home_company_id = getattr(user, "company_id", None)
    session_company_id = home_company_id if company_id is None and not god_mode else company_id
    return {
        "role": user.role,
        "home_company_id": home_company_id,
        "company_id": session_company_id,
        "god_mode": bool(god_mode),
    }


def create_access_token(
    user_id: int,
    extra: Optional[Dict[str, Any]] = None,
    expires_minutes: int = JWT_EXPIRE_MINUTES,
) -> str:
    # "sub" must be a string for python-jose
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expires_minutes)

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if extra:
        payload.update(extra)

    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def create_user_token(user, *, company_id: Optional[int] = None, god_mode: bool = False) -> str:
    return create_access_token(user.id, build_token_claims(user, company_id=company_id, god_mode=god_mode))


def decode_access_token(token: str) -> Dict[str, Any]:
    """Return the JWT payload or raise ValueError when invalid/expired."""
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid or expired token") from exc
