from __future__ import annotations

from typing import Dict

ADMIN_ROLES = {"admin", "owner", "superadmin"}
ASSIGNABLE_ROLES = {"staff", "admin", "owner"}


def normalize_role(role: str | None) -> str:
    role = (role or "").strip().lower()
    # legacy accounts were created as "employee"
    return "staff" if role == "employee" else role


def is_admin_role(role: str | None) -> bool:
    return normalize_role(role) in ADMIN_ROLES


def permissions_for_role(role: str | None) -> Dict[str, bool]:
    """Permission flags the front end uses to show or hide features.

    Admins get full access; staff may view jobs and add time only.
    """
    is_admin = is_admin_role(role)
    return {
        "isAdmin": is_admin,
        "isStaff": not is_admin,
        "canViewJobs": True,
        "canCreateJob": is_admin,
        "canEditJob": is_admin,
        "canAddTime": True,
        "canAccessSettings": is_admin,
        "canManageEmployees": is_admin,
    }
