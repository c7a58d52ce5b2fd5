from typing import Protocol, runtime_checkable

class PaymentsError(Exception):
    """The payments processor rejected or failed a call."""

@runtime_checkable
class PaymentsPort(Protocol):
    async def create_checkout_session(
        self,
        *,
        line_items: list[dict],
        success_url: str,
        cancel_url: str,
        metadata: dict | None = None,
        discounts: list[dict] | None = None,
        mode: str = "payment",
    ) -> dict: ...
    async def retrieve_checkout_session(self, session_id: str) -> dict: ...
