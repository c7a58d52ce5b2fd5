from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.db import get_session
from eduguide.modules.billing.schemas import CheckoutRequest, CheckoutSession, CheckoutStatus
from eduguide.modules.billing.service import CheckoutService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> CheckoutService:
    return CheckoutService(session)

@router.post("/checkout", response_model=CheckoutSession)
async def create_checkout(payload: CheckoutRequest, service: CheckoutService = Depends(svc)):
    return await service.create_session(payload)

@router.get("/checkout/session-status", response_model=CheckoutStatus)
async def checkout_session_status(session_id: str | None = None, service: CheckoutService = Depends(svc)):
    return await service.session_status(session_id)
