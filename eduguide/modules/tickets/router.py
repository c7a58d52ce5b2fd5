import hmac
import uuid
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from eduguide.core.base import utcnow
from eduguide.core.config import settings
from eduguide.core.db import get_session
from eduguide.core.security import (
    AccessContext, require_access, is_staff, manages_tickets,
    MFA_ACCOUNT_LEVEL, MFA_MANAGER_ACTIONS,
)
from eduguide.modules.tickets.schemas import (
    TicketCreate, TicketAssign, TicketStatusChange, TicketEnvelope, TicketList, TicketEventList,
    MessageCreate, MessageList, MessageEnvelope, NoteCreate, NoteList, NoteEnvelope,
    UploadUrlRequest, UploadUrlResult, DownloadUrlRequest, DownloadUrlResult, EscalationResult,
    STATUS_PATTERN, PRIORITY_PATTERN, SOURCE_PATTERN,
)
from eduguide.modules.tickets.service import TicketService
from eduguide.modules.tickets.thread_service import TicketThreadService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> TicketService:
    return TicketService(session)

def thread_svc(session: AsyncSession = Depends(get_session)) -> TicketThreadService:
    return TicketThreadService(session)

viewer = require_access(None, MFA_ACCOUNT_LEVEL)
staff = require_access(is_staff, MFA_ACCOUNT_LEVEL)
manager = require_access(manages_tickets, MFA_MANAGER_ACTIONS)

# ---- Queue ----

@router.get("/backoffice/tickets", response_model=TicketList)
async def list_tickets(
    status: str | None = Query(default=None, pattern=STATUS_PATTERN),
    priority: str | None = Query(default=None, pattern=PRIORITY_PATTERN),
    source_type: str | None = Query(default=None, alias="sourceType", pattern=SOURCE_PATTERN),
    unassigned: bool = False,
    mine: bool = False,
    access: AccessContext = Depends(staff),
    service: TicketService = Depends(svc),
):
    tickets = await service.list_queue(
        access, status=status, priority=priority, source_type=source_type, unassigned=unassigned, mine=mine
    )
    return {"tickets": tickets}

@router.post("/backoffice/tickets", response_model=TicketEnvelope, status_code=201)
async def create_ticket(
    payload: TicketCreate,
    access: AccessContext = Depends(manager),
    service: TicketService = Depends(svc),
):
    return {"ticket": await service.create_ticket(access, payload)}

@router.get("/backoffice/tickets/events", response_model=TicketEventList)
async def list_ticket_events(
    ticket_id: uuid.UUID = Query(alias="ticketId"),
    access: AccessContext = Depends(staff),
    service: TicketService = Depends(svc),
):
    return {"events": await service.history(access, ticket_id)}

@router.post("/backoffice/tickets/assign", response_model=TicketEnvelope)
async def assign_ticket(
    payload: TicketAssign,
    access: AccessContext = Depends(manager),
    service: TicketService = Depends(svc),
):
    return {"ticket": await service.assign(access, payload)}

@router.post("/backoffice/tickets/status", response_model=TicketEnvelope)
async def change_ticket_status(
    payload: TicketStatusChange,
    access: AccessContext = Depends(staff),
    service: TicketService = Depends(svc),
):
    return {"ticket": await service.change_status(access, payload)}

# ---- Thread ----

@router.get("/backoffice/tickets/messages", response_model=MessageList)
async def list_messages(
    ticket_id: uuid.UUID = Query(alias="ticketId"),
    access: AccessContext = Depends(viewer),
    service: TicketThreadService = Depends(thread_svc),
):
    return {"messages": await service.list_messages(access, ticket_id)}

@router.post("/backoffice/tickets/messages", response_model=MessageEnvelope, status_code=201)
async def post_message(
    payload: MessageCreate,
    access: AccessContext = Depends(viewer),
    service: TicketThreadService = Depends(thread_svc),
):
    return {"message": await service.post_message(access, payload)}

@router.get("/backoffice/tickets/notes", response_model=NoteList)
async def list_notes(
    ticket_id: uuid.UUID = Query(alias="ticketId"),
    access: AccessContext = Depends(staff),
    service: TicketThreadService = Depends(thread_svc),
):
    return {"notes": await service.list_notes(access, ticket_id)}

@router.post("/backoffice/tickets/notes", response_model=NoteEnvelope, status_code=201)
async def add_note(
    payload: NoteCreate,
    access: AccessContext = Depends(staff),
    service: TicketThreadService = Depends(thread_svc),
):
    return {"note": await service.add_note(access, payload)}

@router.post("/backoffice/tickets/attachments/upload-url", response_model=UploadUrlResult)
async def create_upload_url(
    payload: UploadUrlRequest,
    access: AccessContext = Depends(viewer),
    service: TicketThreadService = Depends(thread_svc),
):
    return await service.create_upload_url(access, payload)

@router.post("/backoffice/tickets/attachments/download-url", response_model=DownloadUrlResult)
async def create_download_url(
    payload: DownloadUrlRequest,
    access: AccessContext = Depends(viewer),
    service: TicketThreadService = Depends(thread_svc),
):
    return await service.create_download_url(access, payload.attachment_id)

# ---- Internal jobs ----

def require_cron_token(x_backoffice_cron_token: str | None = Header(default=None)) -> None:
    expected = settings.BACKOFFICE_CRON_TOKEN
    if not expected:
        raise HTTPException(status_code=501, detail="Escalation job is not configured")
    if not x_backoffice_cron_token or not hmac.compare_digest(x_backoffice_cron_token, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")

@router.post("/internal/backoffice/escalations", response_model=EscalationResult,
             dependencies=[Depends(require_cron_token)])
async def run_escalations(service: TicketService = Depends(svc)):
    count = await service.escalate_overdue()
    return EscalationResult(escalated_count=count, ran_at=utcnow())
