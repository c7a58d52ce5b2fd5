from typing import Sequence
from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.modules.roles.models import UserRole

class RoleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str) -> UserRole | None:
        res = await self.session.execute(select(UserRole).where(UserRole.user_id == user_id))
        return res.scalar_one_or_none()

    async def list(self, *, role: str | None = None, staff_level: str | None = None) -> Sequence[UserRole]:
        q = select(UserRole)
        if role:        q = q.where(UserRole.role == role)
        if staff_level: q = q.where(UserRole.staff_level == staff_level)
        if role == "staff":
            q = q.order_by(UserRole.staff_level.asc(), UserRole.created_at.asc())
        else:
            q = q.order_by(UserRole.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def find_super_admin(self) -> UserRole | None:
        # legacy rows (role "admin", or staff level "admin") resolve to super_admin too
        q = (
            select(UserRole)
            .where(or_(
                and_(UserRole.role == "staff", UserRole.staff_level.in_(("super_admin", "admin"))),
                UserRole.role == "admin",
            ))
            .order_by(UserRole.created_at.asc())
            .limit(1)
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def upsert(self, user_id: str, role: str, staff_level: str | None) -> UserRole:
        obj = await self.get(user_id)
        if obj is None:
            obj = UserRole(user_id=user_id, role=role, staff_level=staff_level)
            self.session.add(obj)
        else:
            obj.role = role
            obj.staff_level = staff_level
        await self.session.flush()
        return obj
