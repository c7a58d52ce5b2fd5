import logging
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.config import settings
from eduguide.modules.billing.schemas import CheckoutRequest, CheckoutSession, CheckoutStatus
from eduguide.modules.referrals.repository import ReferralRepository
from eduguide.platform.ports.payments import PaymentsPort, PaymentsError
from eduguide.platform.provider_registry import registry

log = logging.getLogger(__name__)

DEFAULT_PRODUCT_NAME = "EduGuide Support"

def is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0

class CheckoutService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.referrals = ReferralRepository(session)

    def _payments(self) -> PaymentsPort:
        payments = registry.payments()
        if payments is None:
            raise HTTPException(status_code=501, detail="Stripe secret key not configured")
        return payments

    async def create_session(self, payload: CheckoutRequest) -> CheckoutSession:
        if not is_positive_int(payload.amount):
            raise HTTPException(status_code=400, detail="Invalid amount")

        referral = None
        code = (payload.referral_code or "").strip().lower()
        if code:
            referral = await self.referrals.get_by_code(code)
            if referral is None:
                raise HTTPException(status_code=400, detail="Invalid referral code.")

        payments = self._payments()
        site = settings.SITE_URL.rstrip("/")
        metadata = {"plan": payload.plan or DEFAULT_PRODUCT_NAME}
        discounts = None
        if referral is not None:
            metadata["referral_code"] = referral.code
            metadata["referrer_user_id"] = referral.user_id
            if settings.STRIPE_REFERRAL_COUPON_ID:
                discounts = [{"coupon": settings.STRIPE_REFERRAL_COUPON_ID}]
            else:
                log.warning(f"Referral code {referral.code} used but STRIPE_REFERRAL_COUPON_ID is not set")

        try:
            session = await payments.create_checkout_session(
                line_items=[{
                    "price_data": {
                        "currency": "usd",
                        "product_data": {"name": payload.plan or DEFAULT_PRODUCT_NAME},
                        "unit_amount": payload.amount,
                    },
                    "quantity": 1,
                }],
                success_url=f"{site}/tutoring?success=true&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{site}/tutoring?canceled=true",
                metadata=metadata,
                discounts=discounts,
            )
        except PaymentsError:
            log.exception("Stripe checkout error")
            raise HTTPException(status_code=500, detail="Could not start checkout")
        return CheckoutSession(id=session["id"], url=session.get("url"))

    async def session_status(self, session_id: str | None) -> CheckoutStatus:
        payments = self._payments()
        session_id = (session_id or "").strip()
        if not session_id:
            raise HTTPException(status_code=400, detail="Missing session_id")
        try:
            session = await payments.retrieve_checkout_session(session_id)
        except PaymentsError:
            log.exception("Session status lookup error")
            raise HTTPException(status_code=500, detail="Unable to retrieve checkout session")
        return CheckoutStatus(
            status=session.get("status"),
            payment_status=session.get("payment_status"),
            customer_email=(session.get("customer_details") or {}).get("email"),
            plan=(session.get("metadata") or {}).get("plan"),
        )
