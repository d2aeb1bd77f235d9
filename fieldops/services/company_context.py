"""Company ("tenant") context for a request.

A session works inside one company at a time. Normally that is the caller's
home company, but a superadmin may switch into any company (or enter god
mode, which lifts company filtering altogether) and an admin/owner may switch
into companies where they also hold an admin account.

When a session operates inside a company other than the caller's own, writes
that are "about the current user" (profile, avatar, password) act on that
company's highest-ranked admin instead of the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import case
from sqlalchemy.orm import Session

from fieldops.models.user import User
from fieldops.services.permissions import normalize_role

logger = logging.getLogger(__name__)
CONTEXT_PREFIX = "[COMPANY_CONTEXT]"

SUPERADMIN_TARGET_ROLES: Tuple[str, ...] = ("owner", "admin", "superadmin")
COMPANY_ADMIN_TARGET_ROLES: Tuple[str, ...] = ("owner", "admin")

NO_ADMIN_DETAIL = "No admin user found for this company"
CROSS_COMPANY_DETAIL = "Not allowed to act in another company"


@dataclass(frozen=True)
class CompanyContext:
    user_id: int
    role: str
    home_company_id: Optional[int]
    company_id: Optional[int]
    god_mode: bool = False

    @property
    def is_switched(self) -> bool:
        return self.company_id is not None and self.company_id != self.home_company_id


class TargetKind(str, Enum):
    SELF = "self"
    COMPANY_ADMIN = "company_admin"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class TargetDecision:
    kind: TargetKind
    roles: Tuple[str, ...] = ()


def decide_target(context: CompanyContext) -> TargetDecision:
    if context.god_mode or not context.is_switched:
        return TargetDecision(TargetKind.SELF)

    role = normalize_role(context.role)
    if role == "superadmin":
        return TargetDecision(TargetKind.COMPANY_ADMIN, SUPERADMIN_TARGET_ROLES)
    if role in COMPANY_ADMIN_TARGET_ROLES:
        return TargetDecision(TargetKind.COMPANY_ADMIN, COMPANY_ADMIN_TARGET_ROLES)
    return TargetDecision(TargetKind.FORBIDDEN)


def find_company_admin(db: Session, company_id: int, roles: Iterable[str]) -> Optional[User]:
    """Highest-ranked active user of ``company_id`` whose role is in ``roles``.

    Rank: owner, admin, superadmin, anything else; then oldest account first.
    """
    rank = case(
        (User.role == "owner", 1),
        (User.role == "admin", 2),
        (User.role == "superadmin", 3),
        else_=4,
    )
    return (
        db.query(User)
        .filter(
            User.company_id == company_id,
            User.active.is_(True),
            User.role.in_(list(roles)),
        )
        .order_by(rank.asc(), User.created_at.asc(), User.id.asc())
        .first()
    )


def resolve_target_user_id(db: Session, context: CompanyContext) -> int:
    decision = decide_target(context)
    if decision.kind is TargetKind.SELF:
        return context.user_id

    if decision.kind is TargetKind.FORBIDDEN:
        logger.warning(
            "%s cross-company access denied user_id=%s role=%s home=%s company=%s",
            CONTEXT_PREFIX,
            context.user_id,
            context.role,
            context.home_company_id,
            context.company_id,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=CROSS_COMPANY_DETAIL)

    admin = find_company_admin(db, context.company_id, decision.roles)
    if admin is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_ADMIN_DETAIL)

    logger.info(
        "%s acting as company admin user_id=%s target_user_id=%s company=%s",
        CONTEXT_PREFIX,
        context.user_id,
        admin.id,
        context.company_id,
    )
    return admin.id


def resolve_target_user(db: Session, context: CompanyContext) -> User:
    target_id = resolve_target_user_id(db, context)
    user = db.query(User).filter(User.id == target_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def company_scope(query, model, context: CompanyContext):
    if context.god_mode:
        return query

    model_company_id = getattr(model, "company_id", None)
    if model_company_id is None:
        return query

    return query.filter(model_company_id == context.company_id)


def require_company_id(context: CompanyContext) -> int:
    if context.company_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Select a company before creating records",
        )
    return int(context.company_id)


def validate_company_ownership(row, context: CompanyContext, detail: str = "Not found"):
    """404 unless ``row`` exists and belongs to the session company."""
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    if context.god_mode:
        return row
    if getattr(row, "company_id", None) != context.company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return row


def can_switch_company(user: User, company_id: int) -> bool:
    """Superadmins may enter any company. Admins and owners may only return
    to their home company; emails are unique, so they hold no account
    anywhere else."""
    role = normalize_role(user.role)
    if role == "superadmin":
        return True
    if role not in COMPANY_ADMIN_TARGET_ROLES:
        return False
    return user.company_id == company_id
