from datetime import datetime
from pydantic import BaseModel, ConfigDict
from eduguide.core.schemas import CamelModel

class RoleAssign(CamelModel):
    user_id: str | None = None
    email: str | None = None
    role: str | None = None
    staff_level: str | None = None
    transfer_super_admin: bool = False

class RoleAssignResult(CamelModel):
    success: bool = True
    user_id: str
    role: str
    staff_level: str | None

class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    role: str
    staff_level: str | None
    created_at: datetime
    updated_at: datetime | None

class RoleList(BaseModel):
    roles: list[RoleOut]

class StaffMemberOut(CamelModel):
    user_id: str
    email: str | None
    role: str
    staff_level: str | None
    created_at: datetime
    updated_at: datetime | None

class StaffList(BaseModel):
    staff: list[StaffMemberOut]

class UserRoleOut(CamelModel):
    role: str
    staff_level: str | None
    mfa_aal: str | None
    mfa_verified: bool
    mfa_required: bool
    is_staff_view: bool
    is_manager_view: bool
    is_super_admin: bool
    is_admin: bool
    can_manage_roles: bool
    can_manage_tickets: bool
    dashboard_path: str
