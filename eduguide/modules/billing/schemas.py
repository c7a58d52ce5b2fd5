from typing import Any
from pydantic import BaseModel
from eduguide.core.schemas import CamelModel

class CheckoutRequest(CamelModel):
    # checked by the service so a bad value gets the "Invalid amount" message
    amount: Any = None
    plan: str | None = None
    referral_code: str | None = None

class CheckoutSession(BaseModel):
    id: str
    url: str | None

class CheckoutStatus(BaseModel):
    status: str | None
    payment_status: str | None
    customer_email: str | None
    plan: str | None
