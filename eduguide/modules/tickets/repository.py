import uuid
from datetime import datetime
from typing import Sequence
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core import access as policy
from eduguide.core.security import AccessContext
from eduguide.modules.tickets.models import (
    Ticket, TicketEvent, TicketMessage, TicketInternalNote, TicketAttachment
)
from eduguide.modules.tickets.workflow import OPEN_STATUSES

def visible_to(viewer: AccessContext):
    """Row filter for the tickets a caller may read."""
    if policy.can_view_all_tickets(viewer.staff_level):
        return None
    if viewer.is_staff_view:
        return Ticket.assigned_to_user_id == viewer.user_id
    return Ticket.student_user_id == viewer.user_id

class TicketRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> Ticket:
        obj = Ticket(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get_visible(self, viewer: AccessContext, ticket_id: uuid.UUID) -> Ticket | None:
        q = select(Ticket).where(Ticket.id == ticket_id)
        cond = visible_to(viewer)
        if cond is not None:
            q = q.where(cond)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def queue(self, viewer: AccessContext, *, status: str | None = None, priority: str | None = None,
                    source_type: str | None = None, unassigned: bool = False,
                    mine: bool = False, limit: int = 200) -> Sequence[Ticket]:
        conditions = []
        cond = visible_to(viewer)
        if cond is not None:
            conditions.append(cond)
        if viewer.is_staff_view and not policy.can_view_all_tickets(viewer.staff_level):
            # a tutor/support queue is their own tickets for their own team
            team = policy.to_assigned_team(viewer.staff_level)
            if team:
                conditions.append(Ticket.assigned_team == team)
        elif unassigned:
            conditions.append(Ticket.assigned_to_user_id.is_(None))
        elif mine:
            conditions.append(Ticket.assigned_to_user_id == viewer.user_id)
        if status:      conditions.append(Ticket.status == status)
        if priority:    conditions.append(Ticket.priority == priority)
        if source_type: conditions.append(Ticket.source_type == source_type)
        q = select(Ticket).where(*conditions).order_by(Ticket.created_at.desc()).limit(limit)
        res = await self.session.execute(q)
        return res.scalars().all()

    async def find_open_for_source(self, source_type: str, student_user_id: str) -> Ticket | None:
        q = (
            select(Ticket)
            .where(
                Ticket.source_type == source_type,
                Ticket.student_user_id == student_user_id,
                Ticket.status.in_(OPEN_STATUSES),
            )
            .order_by(Ticket.created_at.desc())
            .limit(1)
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_overdue(self, now: datetime, limit: int = 200) -> Sequence[Ticket]:
        q = (
            select(Ticket)
            .where(
                Ticket.status.in_(OPEN_STATUSES),
                Ticket.escalated_at.is_(None),
                Ticket.resolution_due_at <= now,
            )
            .order_by(Ticket.created_at.asc())
            .limit(limit)
        )
        res = await self.session.execute(q)
        return res.scalars().all()

class TicketEventRepository:
    """Append-only: there is no update or delete here."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, ticket_id: uuid.UUID, action: str, actor_user_id: str | None, **data) -> TicketEvent:
        obj = TicketEvent(ticket_id=ticket_id, action=action, actor_user_id=actor_user_id, **data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def list_for_ticket(self, ticket_id: uuid.UUID) -> Sequence[TicketEvent]:
        q = select(TicketEvent).where(TicketEvent.ticket_id == ticket_id).order_by(TicketEvent.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

class TicketMessageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ticket_id: uuid.UUID, author_user_id: str, body: str, visibility: str) -> TicketMessage:
        obj = TicketMessage(ticket_id=ticket_id, author_user_id=author_user_id, body=body, visibility=visibility)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def list_for_ticket(self, ticket_id: uuid.UUID, *, include_internal: bool) -> Sequence[TicketMessage]:
        q = select(TicketMessage).where(TicketMessage.ticket_id == ticket_id)
        if not include_internal:
            q = q.where(TicketMessage.visibility == "public")
        res = await self.session.execute(q.order_by(TicketMessage.created_at.asc()))
        return res.scalars().all()

class TicketNoteRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ticket_id: uuid.UUID, staff_user_id: str, note: str) -> TicketInternalNote:
        obj = TicketInternalNote(ticket_id=ticket_id, staff_user_id=staff_user_id, note=note)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def list_for_ticket(self, ticket_id: uuid.UUID) -> Sequence[TicketInternalNote]:
        q = select(TicketInternalNote).where(TicketInternalNote.ticket_id == ticket_id).order_by(TicketInternalNote.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

class TicketAttachmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **data) -> TicketAttachment:
        obj = TicketAttachment(**data)
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def delete(self, obj: TicketAttachment) -> None:
        await self.session.delete(obj)
        await self.session.flush()

    async def get_visible(self, viewer: AccessContext, attachment_id: uuid.UUID) -> TicketAttachment | None:
        q = (
            select(TicketAttachment)
            .join(Ticket, Ticket.id == TicketAttachment.ticket_id)
            .outerjoin(TicketMessage, TicketMessage.id == TicketAttachment.message_id)
            .where(TicketAttachment.id == attachment_id)
        )
        cond = visible_to(viewer)
        if cond is not None:
            q = q.where(cond)
        if not viewer.is_staff_view:
            # students never reach files hanging off internal messages
            q = q.where(or_(
                TicketAttachment.uploaded_by_user_id == viewer.user_id,
                TicketMessage.visibility == "public",
            ))
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def link_to_message(self, ticket_id: uuid.UUID, uploader_user_id: str,
                              message_id: uuid.UUID, attachment_ids: list[uuid.UUID]) -> Sequence[TicketAttachment]:
        """Attach the caller's own unlinked uploads on this ticket; other ids are ignored."""
        if not attachment_ids:
            return []
        q = select(TicketAttachment).where(
            TicketAttachment.id.in_(attachment_ids),
            TicketAttachment.ticket_id == ticket_id,
            TicketAttachment.uploaded_by_user_id == uploader_user_id,
            TicketAttachment.message_id.is_(None),
        )
        res = await self.session.execute(q)
        rows = res.scalars().all()
        for r in rows:
            r.message_id = message_id
        await self.session.flush()
        return rows

    async def list_linked(self, message_ids: list[uuid.UUID]) -> Sequence[TicketAttachment]:
        if not message_ids:
            return []
        q = select(TicketAttachment).where(TicketAttachment.message_id.in_(message_ids)).order_by(TicketAttachment.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()
