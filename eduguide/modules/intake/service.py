import logging
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.security import AccessContext
from eduguide.modules.intake.models import TutoringRequest
from eduguide.modules.intake.repository import TutoringRequestRepository, SupportRequestRepository
from eduguide.modules.intake.schemas import TutoringRequestCreate, LiveSupportStart
from eduguide.modules.tickets.models import Ticket
from eduguide.modules.tickets.repository import TicketRepository, TicketMessageRepository
from eduguide.modules.tickets.service import TicketService

log = logging.getLogger(__name__)

LIVE_SUPPORT_DEFAULT_REQUEST = "User requested a live chat conversation from the support widget."
LIVE_SUPPORT_DEFAULT_MESSAGE = "I would like to speak with a support agent."

def display_name(access: AccessContext) -> str:
    meta = access.user.user_metadata or {}
    raw = meta.get("full_name") or meta.get("first_name")
    if isinstance(raw, str) and raw.strip():
        return raw.strip()[:120]
    email = access.user.email
    if email and "@" in email:
        return email.split("@")[0][:120]
    return "EduGuide user"

class IntakeService:
    """Student-facing entry points that open backoffice tickets."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.tutoring = TutoringRequestRepository(session)
        self.support = SupportRequestRepository(session)
        self.tickets = TicketRepository(session)
        self.messages = TicketMessageRepository(session)
        self.workflow = TicketService(session)

    # ---- Tutoring requests ----

    async def list_tutoring_requests(self, access: AccessContext) -> list[TutoringRequest]:
        return list(await self.tutoring.list_for_user(access.user_id))

    async def create_tutoring_request(self, access: AccessContext, payload: TutoringRequestCreate) -> tuple[TutoringRequest, Ticket]:
        description = payload.description.strip() if payload.description else None
        req = await self.tutoring.create(
            user_id=access.user_id,
            category=payload.category,
            subject=payload.subject,
            description=description or None,
            priority=payload.priority,
            status="new",
        )
        ticket = await self.workflow.open_ticket(
            title=payload.subject,
            actor_user_id=access.user_id,
            source_type="tutoring_request",
            source_id=str(req.id),
            student_user_id=access.user_id,
            requester_email=access.user.email,
            description=description or None,
            category=payload.category,
            priority=payload.priority,
            assigned_team="tutor",
        )
        await self.session.commit()
        log.info(f"Tutoring request {req.id} opened ticket {ticket.id}")
        return req, ticket

    # ---- Live support ----

    async def current_live_session(self, access: AccessContext) -> Ticket | None:
        return await self.tickets.find_open_for_source("support_request", access.user_id)

    async def _append_public_message(self, ticket: Ticket, access: AccessContext, body: str) -> None:
        msg = await self.messages.create(ticket.id, access.user_id, body, "public")
        await self.workflow.record(
            ticket, "message_added", access.user_id,
            details={"message_id": str(msg.id), "visibility": "public", "attachment_count": 0},
        )

    async def start_live_session(self, access: AccessContext, payload: LiveSupportStart) -> tuple[Ticket, bool]:
        """Reuse the caller's open support ticket or open a new one. Returns (ticket, created)."""
        existing = await self.current_live_session(access)
        if existing is not None:
            if payload.initial_message:
                await self._append_public_message(existing, access, payload.initial_message)
                await self.session.commit()
            return existing, False

        req = await self.support.create(
            user_id=access.user_id,
            name=display_name(access),
            email=access.user.email or "unknown@local",
            message=payload.initial_message or LIVE_SUPPORT_DEFAULT_REQUEST,
            priority=payload.priority,
            source="live_chat_widget",
            status="new",
        )
        ticket = await self.workflow.open_ticket(
            title=f"Live support: {display_name(access)}",
            actor_user_id=access.user_id,
            source_type="support_request",
            source_id=str(req.id),
            student_user_id=access.user_id,
            requester_email=req.email,
            description=req.message,
            category="live_support",
            priority=payload.priority,
            assigned_team="support",
        )
        await self._append_public_message(ticket, access, payload.initial_message or LIVE_SUPPORT_DEFAULT_MESSAGE)
        await self.session.commit()
        return ticket, True
