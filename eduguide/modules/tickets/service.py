import uuid
import logging
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.base import utcnow
from eduguide.core.security import AccessContext
from eduguide.modules.events.outbox import OutboxService
from eduguide.modules.intake.repository import TutoringRequestRepository, SupportRequestRepository
from eduguide.modules.roles.repository import RoleRepository
from eduguide.modules.tickets.models import Ticket, TicketEvent
from eduguide.modules.tickets.repository import TicketRepository, TicketEventRepository
from eduguide.modules.tickets.schemas import TicketCreate, TicketAssign, TicketStatusChange
from eduguide.modules.tickets.workflow import (
    coerce_priority, sla_due_dates, status_after_assignment, lifecycle_stamps,
    tutoring_status_for, support_status_for, escalated_priority,
)

log = logging.getLogger(__name__)

class TicketService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.tickets = TicketRepository(session)
        self.events = TicketEventRepository(session)
        self.outbox = OutboxService(session)

    # ---- Events ----

    async def record(self, ticket: Ticket, action: str, actor_user_id: str | None, **data) -> TicketEvent:
        """Append a ticket event and queue it for the event bus in the same transaction."""
        ev = await self.events.append(ticket.id, action, actor_user_id, **data)
        await self.outbox.enqueue(
            f"TICKET_{action.upper()}",
            "ticket",
            ticket.id,
            {
                "action": action,
                "actor_user_id": actor_user_id,
                "status": ticket.status,
                "assigned_to_user_id": ticket.assigned_to_user_id,
                "event_id": str(ev.id),
            },
        )
        return ev

    async def _save(self, ticket: Ticket, action: str, actor_user_id: str | None, **data) -> None:
        ticket_id = ticket.id
        try:
            await self.record(ticket, action, actor_user_id, **data)
            await self.session.commit()
        except StaleDataError:
            # rollback expires the ticket; only the captured id is safe to read afterwards
            await self.session.rollback()
            log.info(f"Concurrent update rejected for ticket {ticket_id}")
            raise HTTPException(status_code=409, detail="Ticket was modified concurrently")

    # ---- Tickets ----

    async def open_ticket(self, *,
                          title: str,
                          actor_user_id: str | None,
                          source_type: str = "manual",
                          source_id: str | None = None,
                          student_user_id: str | None = None,
                          requester_email: str | None = None,
                          description: str | None = None,
                          category: str = "general",
                          priority: str = "medium",
                          assigned_team: str | None = None,
                          is_sensitive: bool = False) -> Ticket:
        """Insert a `new` ticket and its `ticket_created` event. The caller commits."""
        now = utcnow()
        priority = coerce_priority(priority)
        respond_by, resolve_by = sla_due_dates(priority, now)
        ticket = await self.tickets.create(
            source_type=source_type,
            source_id=source_id,
            student_user_id=student_user_id,
            requester_email=requester_email,
            title=title,
            description=description,
            category=category or "general",
            priority=priority,
            status="new",
            is_sensitive=is_sensitive,
            assigned_team=assigned_team,
            created_by_user_id=actor_user_id,
            first_response_due_at=respond_by,
            resolution_due_at=resolve_by,
        )
        await self.record(
            ticket, "ticket_created", actor_user_id,
            new_status="new",
            details={"source_type": source_type, "assigned_team": assigned_team},
        )
        return ticket

    async def create_ticket(self, actor: AccessContext, payload: TicketCreate) -> Ticket:
        if not payload.title:
            raise HTTPException(status_code=400, detail="title is required")
        ticket = await self.open_ticket(
            title=payload.title,
            actor_user_id=actor.user_id,
            student_user_id=payload.student_user_id,
            requester_email=payload.requester_email,
            description=payload.description,
            category=payload.category,
            priority=payload.priority,
            assigned_team=payload.assigned_team,
            is_sensitive=payload.is_sensitive,
        )
        await self.session.commit()
        return ticket

    async def list_queue(self, viewer: AccessContext, **filters) -> list[Ticket]:
        return list(await self.tickets.queue(viewer, **filters))

    async def history(self, viewer: AccessContext, ticket_id: uuid.UUID) -> list[TicketEvent]:
        ticket = await self.tickets.get_visible(viewer, ticket_id)
        if not ticket:
            raise HTTPException(status_code=404, detail="Ticket not found")
        return list(await self.events.list_for_ticket(ticket.id))

    async def assign(self, actor: AccessContext, payload: TicketAssign) -> Ticket:
        # the assignee must already hold the team's staff level; nothing is corrected for them
        assignee = await RoleRepository(self.session).get(payload.assignee_user_id)
        if assignee is None or assignee.role != "staff" or assignee.staff_level != payload.assigned_team:
            raise HTTPException(status_code=400, detail="Assignee does not match required staff level for this team")

        ticket = await self.tickets.get_visible(actor, payload.ticket_id)
        if not ticket:
            raise HTTPException(status_code=404, detail="Ticket not found")

        old_status = ticket.status
        old_assignee = ticket.assigned_to_user_id
        ticket.assigned_team = payload.assigned_team
        ticket.assigned_to_user_id = payload.assignee_user_id
        ticket.assigned_by_user_id = actor.user_id
        ticket.assigned_at = utcnow()
        ticket.status = status_after_assignment(old_status)
        if payload.manager_notes is not None:
            ticket.manager_notes = payload.manager_notes

        await self._save(
            ticket, "ticket_assigned", actor.user_id,
            old_status=old_status,
            new_status=ticket.status,
            old_assignee_user_id=old_assignee,
            new_assignee_user_id=ticket.assigned_to_user_id,
            details={
                "assigned_team": payload.assigned_team,
                "manager_notes": payload.manager_notes,
                "assignment_mode": "manual_override",
            },
        )
        if ticket.status != old_status:
            await self.propagate_to_source(ticket)
        return ticket

    async def change_status(self, actor: AccessContext, payload: TicketStatusChange) -> Ticket:
        ticket = await self.tickets.get_visible(actor, payload.ticket_id)
        if not ticket:
            raise HTTPException(status_code=404, detail="Ticket not found")
        if not actor.can_manage_tickets and ticket.assigned_to_user_id != actor.user_id:
            raise HTTPException(status_code=403, detail="Forbidden: not assigned to this ticket")

        old_status = ticket.status
        ticket.status = payload.status
        for field, value in lifecycle_stamps(payload.status, utcnow()).items():
            setattr(ticket, field, value)

        await self._save(
            ticket, "status_changed", actor.user_id,
            old_status=old_status,
            new_status=payload.status,
            old_assignee_user_id=ticket.assigned_to_user_id,
            new_assignee_user_id=ticket.assigned_to_user_id,
            details={"note": payload.note} if payload.note else None,
        )
        await self.propagate_to_source(ticket)
        return ticket

    async def propagate_to_source(self, ticket: Ticket) -> None:
        """Mirror the ticket status onto the tutoring/support request it came from.

        Runs after the ticket change is committed; a failure here is logged and
        never reaches the caller.
        """
        if ticket.source_type not in ("tutoring_request", "support_request") or not ticket.source_id:
            return
        # detach so a rollback below cannot expire the committed ticket we return
        self.session.expunge(ticket)
        try:
            source_id = uuid.UUID(ticket.source_id)
            if ticket.source_type == "tutoring_request":
                source = await TutoringRequestRepository(self.session).get(source_id)
                next_status = tutoring_status_for(ticket.status)
            else:
                source = await SupportRequestRepository(self.session).get(source_id)
                next_status = support_status_for(ticket.status)
            if source is None:
                log.warning(f"Ticket {ticket.id} points at missing {ticket.source_type} {ticket.source_id}")
                return
            source.status = next_status
            await self.session.commit()
        except (ValueError, SQLAlchemyError):
            await self.session.rollback()
            log.warning(f"Status propagation failed for ticket {ticket.id} -> {ticket.source_type} {ticket.source_id}", exc_info=True)

    # ---- SLA ----

    async def escalate_overdue(self) -> int:
        now = utcnow()
        overdue = await self.tickets.list_overdue(now)
        try:
            for ticket in overdue:
                old_priority = ticket.priority
                ticket.priority = escalated_priority(old_priority)
                ticket.escalated_at = now
                await self.record(
                    ticket, "ticket_escalated", None,
                    old_status=ticket.status,
                    new_status=ticket.status,
                    details={"from_priority": old_priority, "to_priority": ticket.priority, "reason": "resolution_sla_breached"},
                )
            await self.session.commit()
        except StaleDataError:
            # a ticket changed under the job; the whole batch is retried on the next run
            await self.session.rollback()
            log.info(f"Escalation run aborted by a concurrent ticket update ({len(overdue)} candidates)")
            raise HTTPException(status_code=409, detail="Ticket was modified concurrently")
        if overdue:
            log.info(f"Escalated {len(overdue)} overdue tickets")
        return len(overdue)
