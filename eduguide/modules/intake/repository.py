import uuid
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.modules.intake.models import TutoringRequest, SupportRequest

class TutoringRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> TutoringRequest:
        obj = TutoringRequest(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, request_id: uuid.UUID) -> TutoringRequest | None:
        res = await self.session.execute(select(TutoringRequest).where(TutoringRequest.id == request_id))
        return res.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> Sequence[TutoringRequest]:
        q = select(TutoringRequest).where(TutoringRequest.user_id == user_id).order_by(TutoringRequest.created_at.desc())
        res = await self.session.execute(q)
        return res.scalars().all()

class SupportRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> SupportRequest:
        obj = SupportRequest(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, request_id: uuid.UUID) -> SupportRequest | None:
        res = await self.session.execute(select(SupportRequest).where(SupportRequest.id == request_id))
        return res.scalar_one_or_none()
