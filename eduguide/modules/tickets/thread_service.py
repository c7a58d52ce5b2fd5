import re
import time
import uuid
import logging
from collections import defaultdict
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.security import AccessContext
from eduguide.modules.tickets.models import Ticket, TicketInternalNote, TicketAttachment
from eduguide.modules.tickets.repository import (
    TicketRepository, TicketMessageRepository, TicketNoteRepository, TicketAttachmentRepository
)
from eduguide.modules.tickets.schemas import (
    MessageCreate, MessageOut, AttachmentOut, NoteCreate, UploadUrlRequest, UploadUrlResult, DownloadUrlResult
)
from eduguide.modules.tickets.service import TicketService
from eduguide.modules.tickets.workflow import DOWNLOAD_URL_TTL_SECONDS, UPLOAD_URL_TTL_SECONDS
from eduguide.platform.provider_registry import registry

log = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

def safe_file_name(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", name)[:120]

def attachment_path(ticket_id: uuid.UUID, file_name: str) -> str:
    return f"{ticket_id}/{int(time.time() * 1000)}-{uuid.uuid4()}-{safe_file_name(file_name)}"

class TicketThreadService:
    """Messages, internal notes and attachments on a ticket the caller can see."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.tickets = TicketRepository(session)
        self.messages = TicketMessageRepository(session)
        self.notes = TicketNoteRepository(session)
        self.attachments = TicketAttachmentRepository(session)
        self.workflow = TicketService(session)

    async def _visible_ticket(self, viewer: AccessContext, ticket_id: uuid.UUID) -> Ticket:
        ticket = await self.tickets.get_visible(viewer, ticket_id)
        if not ticket:
            raise HTTPException(status_code=404, detail="Ticket not found")
        return ticket

    # ---- Messages ----

    async def list_messages(self, viewer: AccessContext, ticket_id: uuid.UUID) -> list[MessageOut]:
        ticket = await self._visible_ticket(viewer, ticket_id)
        rows = await self.messages.list_for_ticket(ticket.id, include_internal=viewer.is_staff_view)
        linked = await self.attachments.list_linked([m.id for m in rows])
        by_message: dict[uuid.UUID, list[AttachmentOut]] = defaultdict(list)
        for a in linked:
            by_message[a.message_id].append(AttachmentOut.model_validate(a))
        out = [
            MessageOut(
                id=m.id,
                ticket_id=m.ticket_id,
                author_user_id=m.author_user_id,
                visibility=m.visibility,
                body=m.body,
                created_at=m.created_at,
                attachments=by_message.get(m.id, []),
            )
            for m in rows
        ]

        if ticket.is_sensitive and viewer.is_staff_view:
            await self._log_sensitive_access(ticket, viewer)
        return out

    async def _log_sensitive_access(self, ticket: Ticket, viewer: AccessContext) -> None:
        ticket_id = ticket.id
        try:
            await self.workflow.record(
                ticket, "sensitive_ticket_accessed", viewer.user_id,
                details={"source": "message_thread", "staff_level": viewer.staff_level},
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            log.warning(f"Could not record sensitive access to ticket {ticket_id} by {viewer.user_id}", exc_info=True)

    async def post_message(self, viewer: AccessContext, payload: MessageCreate) -> MessageOut:
        ticket = await self._visible_ticket(viewer, payload.ticket_id)
        # only staff may write internal messages; anyone else is downgraded to public
        visibility = "internal" if payload.visibility == "internal" and viewer.is_staff_view else "public"

        msg = await self.messages.create(ticket.id, viewer.user_id, payload.body, visibility)
        linked = await self.attachments.link_to_message(ticket.id, viewer.user_id, msg.id, payload.attachment_ids)
        await self.workflow.record(
            ticket,
            "internal_message_added" if visibility == "internal" else "message_added",
            viewer.user_id,
            details={"message_id": str(msg.id), "visibility": visibility, "attachment_count": len(linked)},
        )
        await self.session.commit()
        return MessageOut(
            id=msg.id,
            ticket_id=msg.ticket_id,
            author_user_id=msg.author_user_id,
            visibility=msg.visibility,
            body=msg.body,
            created_at=msg.created_at,
            attachments=[AttachmentOut.model_validate(a) for a in linked],
        )

    # ---- Internal notes ----

    async def list_notes(self, viewer: AccessContext, ticket_id: uuid.UUID) -> list[TicketInternalNote]:
        ticket = await self._visible_ticket(viewer, ticket_id)
        return list(await self.notes.list_for_ticket(ticket.id))

    async def add_note(self, viewer: AccessContext, payload: NoteCreate) -> TicketInternalNote:
        ticket = await self._visible_ticket(viewer, payload.ticket_id)
        note = await self.notes.create(ticket.id, viewer.user_id, payload.note)
        await self.workflow.record(
            ticket, "internal_note_added", viewer.user_id,
            details={"note_id": str(note.id), "note_length": len(payload.note)},
        )
        await self.session.commit()
        return note

    # ---- Attachments ----

    async def create_upload_url(self, viewer: AccessContext, payload: UploadUrlRequest) -> UploadUrlResult:
        ticket = await self._visible_ticket(viewer, payload.ticket_id)
        attachment = await self.attachments.create(
            ticket_id=ticket.id,
            uploaded_by_user_id=viewer.user_id,
            storage_path=attachment_path(ticket.id, payload.file_name),
            file_name=safe_file_name(payload.file_name),
            content_type=payload.content_type or "application/octet-stream",
            file_size=payload.file_size,
        )
        await self.session.commit()
        out = AttachmentOut.model_validate(attachment)

        try:
            upload = registry.object_storage().presign_upload(
                attachment.storage_path, out.content_type, expires_seconds=UPLOAD_URL_TTL_SECONDS
            )
        except Exception:
            log.exception(f"Signing upload failed for attachment {attachment.id}")
            await self._discard(attachment)
            raise HTTPException(status_code=500, detail="Failed to create signed upload URL")

        return UploadUrlResult(attachment=out, upload=upload)

    async def _discard(self, attachment: TicketAttachment) -> None:
        attachment_id = attachment.id
        try:
            await self.attachments.delete(attachment)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            log.warning(f"Could not remove orphaned attachment row {attachment_id}", exc_info=True)

    async def create_download_url(self, viewer: AccessContext, attachment_id: uuid.UUID) -> DownloadUrlResult:
        attachment = await self.attachments.get_visible(viewer, attachment_id)
        if not attachment:
            raise HTTPException(status_code=404, detail="Attachment not found or not accessible")
        url = registry.object_storage().presign_download(attachment.storage_path, expires_seconds=DOWNLOAD_URL_TTL_SECONDS)
        return DownloadUrlResult(signed_url=url, expires_in=DOWNLOAD_URL_TTL_SECONDS)
