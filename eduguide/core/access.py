"""Role normalization and permission rules.

Everything here is pure: no I/O, no settings. The resolver in
``eduguide.core.security`` feeds these functions; routers and services call
them to decide what a caller may do.
"""

from typing import Literal

CanonicalRole = Literal["student", "staff"]
StaffLevel = Literal["tutor", "support", "manager", "super_admin"]
AssignedTeam = Literal["tutor", "support"]

STAFF_LEVELS: frozenset[str] = frozenset({"tutor", "support", "manager", "super_admin"})
PRIVILEGED_LEVELS: frozenset[str] = frozenset({"manager", "super_admin"})
MFA_VERIFIED_AAL: frozenset[str] = frozenset({"aal2", "aal3"})

LEGACY_ROLE_TO_STAFF_LEVEL: dict[str, str] = {
    "tutor": "tutor",
    "staff": "support",
    "admin": "super_admin",
}

def normalize_staff_level(value) -> str | None:
    if not isinstance(value, str):
        return None
    if value == "staff":
        return "support"
    if value == "admin":
        return "super_admin"
    return value if value in STAFF_LEVELS else None

def is_staff_level(value) -> bool:
    return normalize_staff_level(value) is not None

def normalize_role(role_value, staff_level_value) -> tuple[str, str | None]:
    """Map a stored or legacy role onto (canonical role, staff level).

    ``staff`` keeps its level (default ``support``); the legacy roles
    ``tutor``/``staff``/``admin`` become staff with a fixed level; anything
    else is a student.
    """
    role = role_value if isinstance(role_value, str) else "student"
    if role == "staff":
        return "staff", normalize_staff_level(staff_level_value) or "support"
    if role in LEGACY_ROLE_TO_STAFF_LEVEL:
        return "staff", LEGACY_ROLE_TO_STAFF_LEVEL[role]
    return "student", None

def to_assigned_team(staff_level: str | None) -> str | None:
    if staff_level == "tutor":
        return "tutor"
    if staff_level == "support":
        return "support"
    return None

def can_manage_roles(staff_level: str | None) -> bool:
    return staff_level == "super_admin"

def can_manage_tickets(staff_level: str | None) -> bool:
    return staff_level in PRIVILEGED_LEVELS

def can_view_all_tickets(staff_level: str | None) -> bool:
    return can_manage_tickets(staff_level)

def is_mfa_verified(aal: str | None) -> bool:
    return aal in MFA_VERIFIED_AAL

def requires_step_up_mfa(staff_level: str | None, mfa_verified: bool) -> bool:
    if staff_level not in PRIVILEGED_LEVELS:
        return False
    return not mfa_verified

_DASHBOARD_BY_LEVEL = {
    "super_admin": "/backoffice/super-admin",
    "manager": "/backoffice/manager",
    "tutor": "/backoffice/tutor",
    "support": "/backoffice/support",
}

def dashboard_path_for_staff_level(staff_level: str | None) -> str:
    return _DASHBOARD_BY_LEVEL.get(staff_level, "/staff/dashboard")

def default_dashboard_path(role: str, staff_level: str | None) -> str:
    if role == "staff":
        return dashboard_path_for_staff_level(staff_level)
    return "/dashboard"
