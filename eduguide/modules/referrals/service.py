import re
import secrets
import logging
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.config import settings
from eduguide.core.security import AccessContext
from eduguide.modules.referrals.models import ReferralCode
from eduguide.modules.referrals.repository import ReferralRepository
from eduguide.modules.referrals.schemas import ReferralLink, ReferralClick

log = logging.getLogger(__name__)

CODE_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
CODE_ATTEMPTS = 5

def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())[:8] or "user"

def generate_code(prefix: str) -> str:
    return f"{prefix}-{''.join(secrets.choice(CODE_ALPHABET) for _ in range(6))}"

def share_url(code: str) -> str:
    return f"{settings.SITE_URL.rstrip('/')}/tutoring?ref={code}"

class ReferralService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ReferralRepository(session)

    def _link(self, row: ReferralCode) -> ReferralLink:
        return ReferralLink(code=row.code, share_url=share_url(row.code), clicks=row.clicks or 0)

    async def get_or_create(self, access: AccessContext) -> ReferralLink:
        existing = await self.repo.get_for_user(access.user_id)
        if existing:
            return self._link(existing)

        prefix = slugify((access.user.email or "").split("@")[0])
        code = generate_code(prefix)
        for _ in range(CODE_ATTEMPTS):
            if not await self.repo.code_exists(code):
                break
            code = generate_code(prefix)

        try:
            row = await self.repo.create(access.user_id, code)
            await self.session.commit()
        except IntegrityError:
            # a parallel request created this user's code first
            await self.session.rollback()
            row = await self.repo.get_for_user(access.user_id)
            if row is None:
                log.error(f"Could not create referral code for {access.user_id}")
                raise HTTPException(status_code=500, detail="Could not create referral code")
        return self._link(row)

    async def record_click(self, payload: ReferralClick) -> None:
        if not payload.code:
            raise HTTPException(status_code=400, detail="Missing code")
        code = payload.code

        try:
            await self.repo.increment_clicks(code)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            log.warning(f"Atomic click increment failed for {code}; falling back", exc_info=True)
            row = await self.repo.get_by_code(code)
            if row is not None:
                row.clicks = (row.clicks or 0) + 1
                await self.session.commit()

        referrer = await self.repo.get_by_code(code)
        try:
            await self.repo.add_attribution(
                referral_code=code,
                referrer_user_id=referrer.user_id if referrer else None,
                visitor_id=payload.visitor_id,
                landing_url=payload.landing_url,
                utm_source=payload.utm_source,
                utm_medium=payload.utm_medium,
                utm_campaign=payload.utm_campaign,
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            log.warning(f"Referral attribution insert failed for {code}", exc_info=True)
