from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.modules.audit.models import AdminAuditLog

class AuditService:
    """Admin audit trail. Rows are added to the caller's transaction; the caller commits."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(self,
                  actor_user_id: str,
                  action: str,
                  target: str,
                  details: dict | None = None,
                  request: Request | None = None) -> AdminAuditLog:
        ev = AdminAuditLog(
            actor_user_id=actor_user_id,
            action=action,
            target=target,
            details=details,
            client_ip=(request.client.host if request and request.client else None),
            user_agent=(request.headers.get("user-agent") if request else None),
        )
        self.session.add(ev)
        await self.session.flush()
        return ev