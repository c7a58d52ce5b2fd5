import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eduguide.core import access as policy
from eduguide.core.db import get_session
from eduguide.modules.roles.repository import RoleRepository
from eduguide.platform.ports.identity import IdentityUser
from eduguide.platform.provider_registry import registry

log = logging.getLogger(__name__)

http_bearer = HTTPBearer(auto_error=False)

MFA_ACCOUNT_LEVEL = "MFA required for this account level"
MFA_MANAGER_ACTIONS = "MFA required for manager and super admin actions"
MFA_MANAGER_ACCESS = "MFA required for manager and super admin access"
MFA_ROLE_MANAGEMENT = "MFA required for role management"

class AccessContext(BaseModel):
    user: IdentityUser
    role: str
    staff_level: str | None = None
    mfa_aal: str | None = None
    mfa_verified: bool = False
    mfa_required: bool = False
    is_staff_view: bool = False
    is_manager_view: bool = False
    is_super_admin: bool = False
    can_manage_roles: bool = False
    can_manage_tickets: bool = False
    dashboard_path: str = "/dashboard"

    @property
    def user_id(self) -> str:
        return self.user.id

def read_assurance_level(token: str) -> str | None:
    """Read the `aal` claim without verifying the signature; the identity provider validates the token."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    if not isinstance(claims, dict):
        return None
    aal = claims.get("aal")
    return aal if isinstance(aal, str) else None

def build_access_context(user: IdentityUser, role: str, staff_level: str | None, mfa_aal: str | None) -> AccessContext:
    mfa_verified = policy.is_mfa_verified(mfa_aal)
    manages_tickets = policy.can_manage_tickets(staff_level)
    return AccessContext(
        user=user,
        role=role,
        staff_level=staff_level,
        mfa_aal=mfa_aal,
        mfa_verified=mfa_verified,
        mfa_required=policy.requires_step_up_mfa(staff_level, mfa_verified),
        is_staff_view=role == "staff",
        is_manager_view=manages_tickets,
        is_super_admin=staff_level == "super_admin",
        can_manage_roles=policy.can_manage_roles(staff_level),
        can_manage_tickets=manages_tickets,
        dashboard_path=policy.default_dashboard_path(role, staff_level),
    )

async def resolve_access(token: str, session: AsyncSession) -> AccessContext:
    mfa_aal = read_assurance_level(token)

    user = await registry.identity().get_user(token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    # identity metadata is the fallback; the role table is the system of record
    role, staff_level = policy.normalize_role(
        user.app_metadata.get("role"), user.app_metadata.get("staff_level")
    )
    try:
        row = await RoleRepository(session).get(user.id)
    except SQLAlchemyError:
        log.warning(f"Role lookup failed for {user.id}; using identity metadata", exc_info=True)
        await session.rollback()
        row = None
    if row is not None and row.role:
        role, staff_level = policy.normalize_role(row.role, row.staff_level)

    return build_access_context(user, role, staff_level, mfa_aal)

async def get_access(
    creds: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    session: AsyncSession = Depends(get_session),
) -> AccessContext:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return await resolve_access(creds.credentials, session)

def authorize(access: AccessContext, allowed: bool = True, mfa_message: str = MFA_ACCOUNT_LEVEL) -> AccessContext:
    """Plain 403 first, then the step-up MFA 403."""
    if not allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    if access.mfa_required:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=mfa_message)
    return access

def require_access(predicate=None, mfa_message: str = MFA_ACCOUNT_LEVEL):
    """Route dependency: resolve the caller, then apply `authorize` before the body is read."""
    async def dep(access: AccessContext = Depends(get_access)) -> AccessContext:
        return authorize(access, predicate(access) if predicate else True, mfa_message)
    return dep

def is_staff(access: AccessContext) -> bool:
    return access.is_staff_view

def manages_tickets(access: AccessContext) -> bool:
    return access.can_manage_tickets

def manages_roles(access: AccessContext) -> bool:
    return access.can_manage_roles
