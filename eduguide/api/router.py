from fastapi import APIRouter
from eduguide.modules.roles.router import router as roles_router
from eduguide.modules.tickets.router import router as tickets_router
from eduguide.modules.intake.router import router as intake_router
from eduguide.modules.referrals.router import router as referrals_router
from eduguide.modules.billing.router import router as billing_router

api_router = APIRouter()
api_router.include_router(roles_router, tags=["roles"])
api_router.include_router(tickets_router, tags=["tickets"])
api_router.include_router(intake_router, tags=["intake"])
api_router.include_router(referrals_router, tags=["referrals"])
api_router.include_router(billing_router, tags=["billing"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
