import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, ForeignKey, Integer, BigInteger, TIMESTAMP, JSON, Boolean, event
from eduguide.core.base import Base, TimestampedMixin, CreatedOnlyMixin

# ---- Tickets ----

class Ticket(Base, TimestampedMixin):
    # Origin
    source_type: Mapped[str] = mapped_column(String(32), default="manual")  # manual, tutoring_request, support_request
    source_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    student_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    requester_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Core fields
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), default="general")
    priority: Mapped[str] = mapped_column(String(8), default="medium")  # low, medium, high, urgent
    status: Mapped[str] = mapped_column(String(32), default="new")  # new, assigned, in_progress, waiting_on_student, resolved, closed
    is_sensitive: Mapped[bool] = mapped_column(Boolean, default=False)

    # Assignment
    assigned_team: Mapped[str | None] = mapped_column(String(16), nullable=True)  # tutor, support
    assigned_to_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    assigned_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    manager_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Lifecycle
    assigned_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    first_response_due_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    resolution_due_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    escalated_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # bumped on every UPDATE; a stale writer gets StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

class TicketEvent(Base, CreatedOnlyMixin):
    ticket_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("ticket.id"), index=True)
    actor_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)  # None for system jobs
    action: Mapped[str] = mapped_column(String(48))
    old_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    old_assignee_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    new_assignee_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

@event.listens_for(TicketEvent, "before_update")
def _ticket_event_is_immutable(mapper, connection, target):
    raise RuntimeError("ticket events are append-only")

@event.listens_for(TicketEvent, "before_delete")
def _ticket_event_is_permanent(mapper, connection, target):
    raise RuntimeError("ticket events are append-only")

# ---- Thread ----

class TicketMessage(Base, CreatedOnlyMixin):
    ticket_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("ticket.id"), index=True)
    author_user_id: Mapped[str] = mapped_column(String(64))
    visibility: Mapped[str] = mapped_column(String(16), default="public")  # public, internal
    body: Mapped[str] = mapped_column(Text)

class TicketInternalNote(Base, CreatedOnlyMixin):
    ticket_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("ticket.id"), index=True)
    staff_user_id: Mapped[str] = mapped_column(String(64))
    note: Mapped[str] = mapped_column(Text)

class TicketAttachment(Base, CreatedOnlyMixin):
    ticket_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("ticket.id"), index=True)
    message_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("ticketmessage.id"), nullable=True)
    uploaded_by_user_id: Mapped[str] = mapped_column(String(64))
    # object key inside the attachments bucket
    storage_path: Mapped[str] = mapped_column(String(512))
    file_name: Mapped[str] = mapped_column(String(120))
    content_type: Mapped[str] = mapped_column(String(128))
    file_size: Mapped[int] = mapped_column(BigInteger)
