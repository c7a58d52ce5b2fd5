from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.db import get_session
from eduguide.core.security import AccessContext, get_access
from eduguide.modules.referrals.schemas import ReferralLink, ReferralClick, ClickRecorded
from eduguide.modules.referrals.service import ReferralService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> ReferralService:
    return ReferralService(session)

@router.get("/referral", response_model=ReferralLink)
async def get_referral_link(
    access: AccessContext = Depends(get_access),
    service: ReferralService = Depends(svc),
):
    return await service.get_or_create(access)

@router.post("/referral/click", response_model=ClickRecorded)
async def record_referral_click(
    payload: ReferralClick,
    service: ReferralService = Depends(svc),
):
    await service.record_click(payload)
    return ClickRecorded()
