import logging
from fastapi import HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core import access as policy
from eduguide.core.errors import ApiError
from eduguide.core.security import AccessContext
from eduguide.modules.audit.service import AuditService
from eduguide.modules.roles.models import UserRole
from eduguide.modules.roles.repository import RoleRepository
from eduguide.modules.roles.schemas import RoleAssign, RoleAssignResult, StaffMemberOut
from eduguide.platform.ports.identity import IdentityError
from eduguide.platform.provider_registry import registry

log = logging.getLogger(__name__)

class RoleService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = RoleRepository(session)

    async def list_roles(self) -> list[UserRole]:
        return list(await self.repo.list())

    async def list_staff(self, level: str | None = None) -> list[StaffMemberOut]:
        rows = await self.repo.list(role="staff", staff_level=level)
        users = await registry.identity().list_users()
        email_by_user_id = {u.id: u.email for u in users if u.id and u.email}
        return [
            StaffMemberOut(
                user_id=row.user_id,
                email=email_by_user_id.get(row.user_id),
                role=row.role,
                staff_level=row.staff_level,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )
            for row in rows
        ]

    async def _resolve_target(self, payload: RoleAssign) -> str | None:
        if payload.user_id:
            return payload.user_id
        if not payload.email:
            return None
        user = await registry.identity().find_user_by_email(payload.email)
        return user.id if user else None

    async def assign_role(self, actor: AccessContext, payload: RoleAssign, request: Request | None = None) -> RoleAssignResult:
        if not payload.role:
            raise HTTPException(status_code=400, detail="role is required")

        target_user_id = await self._resolve_target(payload)
        if not target_user_id:
            raise HTTPException(status_code=404, detail="Target user not found")

        if payload.role not in ("student", "staff"):
            raise HTTPException(status_code=400, detail="Invalid role")

        next_role = payload.role
        next_level = payload.staff_level if next_role == "staff" else None
        if next_role == "staff" and not policy.is_staff_level(next_level):
            raise HTTPException(
                status_code=400,
                detail="staffLevel is required for staff and must be one of tutor/support/manager/super_admin",
            )
        if next_level is not None:
            next_level = policy.normalize_staff_level(next_level)

        # the super admin only steps down by transferring the role to a successor
        if next_level != "super_admin":
            current = await self.repo.get(target_user_id)
            if current is not None and policy.normalize_role(current.role, current.staff_level)[1] == "super_admin":
                raise ApiError(
                    409,
                    "The super admin cannot be demoted directly. Assign super_admin to another user with transferSuperAdmin=true.",
                    existingSuperAdminUserId=target_user_id,
                )

        demoted_user_id: str | None = None
        try:
            if next_level == "super_admin":
                holder = await self.repo.find_super_admin()
                if holder is not None and holder.user_id != target_user_id:
                    if not payload.transfer_super_admin:
                        raise ApiError(
                            409,
                            "A super admin already exists. Set transferSuperAdmin=true to transfer ownership.",
                            existingSuperAdminUserId=holder.user_id,
                        )
                    # demote first so the single-super-admin index holds at every flush
                    holder.role = "staff"
                    holder.staff_level = "manager"
                    await self.session.flush()
                    demoted_user_id = holder.user_id

            await self.repo.upsert(target_user_id, next_role, next_level)
            await AuditService(self.session).log(
                actor.user_id,
                "assign_user_role",
                target_user_id,
                {"role": next_role, "staff_level": next_level, "demoted_user_id": demoted_user_id},
                request=request,
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            log.warning(f"Concurrent super admin assignment rejected for {target_user_id}")
            raise ApiError(409, "Role assignment conflicted with a concurrent change. Retry the request.")
        except HTTPException:
            await self.session.rollback()
            raise

        # identity metadata is only a fallback for the role table, so a failed refresh is not fatal
        await self._refresh_metadata(target_user_id, next_role, next_level)
        if demoted_user_id:
            await self._refresh_metadata(demoted_user_id, "staff", "manager")

        return RoleAssignResult(user_id=target_user_id, role=next_role, staff_level=next_level)

    async def _refresh_metadata(self, user_id: str, role: str, staff_level: str | None) -> None:
        try:
            await registry.identity().update_app_metadata(user_id, {"role": role, "staff_level": staff_level})
        except IdentityError:
            log.warning(f"Role saved but identity metadata refresh failed for {user_id}", exc_info=True)
