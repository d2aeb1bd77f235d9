from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from fieldops.models.user import User
from fieldops.services.passwords import hash_password, is_password_hash
from fieldops.services.users import normalize_email


def ensure_users_table(engine: Engine) -> None:
    inspector = inspect(engine)
    if not inspector.has_table("users"):
        raise RuntimeError("Table users not found. Run `alembic upgrade head` first.")


def upsert_superadmin(
    db: Session,
    *,
    email: str,
    password: str | None,
    full_name: str | None = None,
    reset_password: bool = False,
) -> tuple[User, bool]:
    """Create the platform superadmin, or re-activate an existing one.

    Superadmins live outside any company (``company_id`` is NULL). An existing
    password is only replaced when ``reset_password`` is set.
    """
    email = normalize_email(email)
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        existing.role = "superadmin"
        existing.active = True
        if full_name:
            existing.full_name = full_name
        if password and reset_password:
            existing.password_hash = _password_hash(password)
        db.commit()
        db.refresh(existing)
        return existing, False

    if not password:
        raise ValueError("A password is required to create a new superadmin.")

    user = User(
        company_id=None,
        email=email,
        password_hash=_password_hash(password),
        role="superadmin",
        active=True,
        full_name=full_name or "Superadmin",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, True


def _password_hash(password: str) -> str:
    if is_password_hash(password):
        return password
    return hash_password(password)
