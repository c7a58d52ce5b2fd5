import uuid
from datetime import datetime
from typing import Annotated
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from eduguide.core.schemas import CamelModel
from eduguide.modules.tickets.workflow import coerce_priority

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

STATUS_PATTERN = "^(new|assigned|in_progress|waiting_on_student|resolved|closed)$"
PRIORITY_PATTERN = "^(low|medium|high|urgent)$"
SOURCE_PATTERN = "^(manual|tutoring_request|support_request)$"
TEAM_PATTERN = "^(tutor|support)$"

# ---- Tickets ----

class TicketCreate(CamelModel):
    title: str = ""
    description: str | None = None
    category: str = "general"
    priority: str = "medium"
    assigned_team: str | None = Field(default=None, pattern=TEAM_PATTERN)
    student_user_id: str | None = None
    requester_email: str | None = None
    is_sensitive: bool = False

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        return v.strip()

    @field_validator("priority", mode="before")
    @classmethod
    def _known_priority(cls, v):
        return coerce_priority(v)

class TicketAssign(CamelModel):
    ticket_id: uuid.UUID
    assignee_user_id: NonEmptyStr
    assigned_team: str = Field(pattern=TEAM_PATTERN)
    manager_notes: str | None = None

class TicketStatusChange(CamelModel):
    ticket_id: uuid.UUID
    status: str = Field(pattern=STATUS_PATTERN)
    note: str | None = None

class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    source_type: str
    source_id: str | None
    student_user_id: str | None
    requester_email: str | None
    title: str
    description: str | None
    category: str
    priority: str
    status: str
    is_sensitive: bool
    assigned_team: str | None
    assigned_to_user_id: str | None
    assigned_by_user_id: str | None
    created_by_user_id: str | None
    manager_notes: str | None
    assigned_at: datetime | None
    resolved_at: datetime | None
    closed_at: datetime | None
    first_response_due_at: datetime | None
    resolution_due_at: datetime | None
    escalated_at: datetime | None
    created_at: datetime
    updated_at: datetime | None

class TicketEnvelope(BaseModel):
    ticket: TicketOut

class TicketList(BaseModel):
    tickets: list[TicketOut]

# ---- Events ----

class TicketEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    ticket_id: uuid.UUID
    actor_user_id: str | None
    action: str
    old_status: str | None
    new_status: str | None
    old_assignee_user_id: str | None
    new_assignee_user_id: str | None
    metadata: dict | None = Field(default=None, validation_alias="details")
    created_at: datetime

class TicketEventList(BaseModel):
    events: list[TicketEventOut]

# ---- Thread ----

class MessageCreate(CamelModel):
    ticket_id: uuid.UUID
    body: NonEmptyStr
    visibility: str = "public"
    attachment_ids: list[uuid.UUID] = Field(default_factory=list)

class NoteCreate(CamelModel):
    ticket_id: uuid.UUID
    note: NonEmptyStr

class AttachmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    ticket_id: uuid.UUID
    message_id: uuid.UUID | None
    uploaded_by_user_id: str
    storage_path: str
    file_name: str
    content_type: str
    file_size: int
    created_at: datetime

class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    ticket_id: uuid.UUID
    author_user_id: str
    visibility: str
    body: str
    created_at: datetime
    attachments: list[AttachmentOut] = Field(default_factory=list)

class MessageList(BaseModel):
    messages: list[MessageOut]

class MessageEnvelope(BaseModel):
    message: MessageOut

class NoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    ticket_id: uuid.UUID
    staff_user_id: str
    note: str
    created_at: datetime

class NoteList(BaseModel):
    notes: list[NoteOut]

class NoteEnvelope(BaseModel):
    note: NoteOut

class UploadUrlRequest(CamelModel):
    ticket_id: uuid.UUID
    file_name: NonEmptyStr
    content_type: str = "application/octet-stream"
    file_size: int = Field(gt=0)

class UploadUrlResult(CamelModel):
    attachment: AttachmentOut
    upload: dict

class DownloadUrlRequest(CamelModel):
    attachment_id: uuid.UUID

class DownloadUrlResult(CamelModel):
    signed_url: str
    expires_in: int

# ---- Internal jobs ----

class EscalationResult(CamelModel):
    success: bool = True
    escalated_count: int
    ran_at: datetime
