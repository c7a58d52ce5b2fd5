import logging
import stripe
from eduguide.core.config import settings
from eduguide.platform.ports.payments import PaymentsPort, PaymentsError

log = logging.getLogger("payments.stripe")

class StripePayments(PaymentsPort):
    def __init__(self, secret_key: str | None = None, client: stripe.StripeClient | None = None):
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        if not self.secret_key and client is None:
            raise RuntimeError("STRIPE_SECRET_KEY not configured")
        # async calls go through the SDK's httpx transport
        self.client = client or stripe.StripeClient(self.secret_key, http_client=stripe.HTTPXClient())

    async def create_checkout_session(
        self,
        *,
        line_items: list[dict],
        success_url: str,
        cancel_url: str,
        metadata: dict | None = None,
        discounts: list[dict] | None = None,
        mode: str = "payment",
    ) -> dict:
        params = {
            "mode": mode,
            "payment_method_types": ["card"],
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if metadata:
            params["metadata"] = metadata
        if discounts:
            params["discounts"] = discounts
        try:
            session = await self.client.v1.checkout.sessions.create_async(params=params)
        except stripe.StripeError as e:
            log.error(f"Stripe checkout session create failed: {e.user_message or e}")
            raise PaymentsError("Stripe rejected the checkout session") from e
        return session.to_dict()

    async def retrieve_checkout_session(self, session_id: str) -> dict:
        try:
            session = await self.client.v1.checkout.sessions.retrieve_async(session_id)
        except stripe.StripeError as e:
            log.error(f"Stripe checkout session {session_id} lookup failed: {e.user_message or e}")
            raise PaymentsError("Stripe could not return the checkout session") from e
        return session.to_dict()
