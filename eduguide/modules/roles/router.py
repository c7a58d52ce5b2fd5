from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.db import get_session
from eduguide.core.security import (
    AccessContext, get_access, require_access, manages_roles,
    MFA_ROLE_MANAGEMENT, MFA_MANAGER_ACCESS,
)
from eduguide.modules.roles.schemas import (
    RoleAssign, RoleAssignResult, RoleList, StaffList, UserRoleOut
)
from eduguide.modules.roles.service import RoleService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> RoleService:
    return RoleService(session)

role_admin = require_access(manages_roles, MFA_ROLE_MANAGEMENT)
staff_directory = require_access(lambda a: a.can_manage_tickets or a.can_manage_roles, MFA_MANAGER_ACCESS)

@router.get("/user-role", response_model=UserRoleOut)
async def get_user_role(access: AccessContext = Depends(get_access)):
    return UserRoleOut(
        role=access.role,
        staff_level=access.staff_level,
        mfa_aal=access.mfa_aal,
        mfa_verified=access.mfa_verified,
        mfa_required=access.mfa_required,
        is_staff_view=access.is_staff_view,
        is_manager_view=access.is_manager_view,
        is_super_admin=access.is_super_admin,
        is_admin=access.is_super_admin,
        can_manage_roles=access.can_manage_roles,
        can_manage_tickets=access.can_manage_tickets,
        dashboard_path=access.dashboard_path,
    )

@router.get("/backoffice/roles", response_model=RoleList)
async def list_roles(
    access: AccessContext = Depends(role_admin),
    service: RoleService = Depends(svc),
):
    return {"roles": await service.list_roles()}

@router.post("/backoffice/roles", response_model=RoleAssignResult)
async def assign_role(
    payload: RoleAssign,
    request: Request,
    access: AccessContext = Depends(role_admin),
    service: RoleService = Depends(svc),
):
    return await service.assign_role(access, payload, request)

@router.get("/backoffice/staff", response_model=StaffList)
async def list_staff(
    level: str | None = None,
    access: AccessContext = Depends(staff_directory),
    service: RoleService = Depends(svc),
):
    return {"staff": await service.list_staff(level)}
