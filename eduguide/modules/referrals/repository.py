from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.modules.referrals.models import ReferralCode, ReferralAttribution

class ReferralRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_user(self, user_id: str) -> ReferralCode | None:
        res = await self.session.execute(select(ReferralCode).where(ReferralCode.user_id == user_id))
        return res.scalar_one_or_none()

    async def get_by_code(self, code: str) -> ReferralCode | None:
        res = await self.session.execute(select(ReferralCode).where(ReferralCode.code == code))
        return res.scalar_one_or_none()

    async def code_exists(self, code: str) -> bool:
        res = await self.session.execute(select(ReferralCode.id).where(ReferralCode.code == code))
        return res.first() is not None

    async def create(self, user_id: str, code: str) -> ReferralCode:
        obj = ReferralCode(user_id=user_id, code=code, clicks=0)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def increment_clicks(self, code: str) -> int:
        """Single-statement increment; returns the number of rows touched."""
        res = await self.session.execute(
            update(ReferralCode)
            .where(ReferralCode.code == code)
            .values(clicks=ReferralCode.clicks + 1)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    async def add_attribution(self, **data) -> ReferralAttribution:
        obj = ReferralAttribution(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj
